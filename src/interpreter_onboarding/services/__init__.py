"""Service layer — wizard orchestration returning ServiceResult.

Services may import from domain and infrastructure layers.
They must never be imported by the domain layer.
"""
