"""Infrastructure layer — profile backend client, address validation, gateway.

This layer depends on stdlib and third-party libs (requests).
It must never import from services or plugins hook implementations.
"""
