"""Domain layer — reference data, rates, draft, wizard state, rejections.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, plugins, or config.
"""
