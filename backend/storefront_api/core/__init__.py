"""
Application wiring: lifespan, CORS and middlewares.
"""

from storefront_api.core.lifespan import lifespan
from storefront_api.core.cors import configure_cors
from storefront_api.core.middlewares import register_middlewares

__all__ = ["lifespan", "configure_cors", "register_middlewares"]
