"""Built-in catalog data."""

from .default_requirements import (
    DEFAULT_MENU,
    DEFAULT_STOCK_ITEMS,
    DefaultMenuItem,
    Requirement,
    default_requirements_for,
)

__all__ = [
    "DEFAULT_MENU",
    "DEFAULT_STOCK_ITEMS",
    "DefaultMenuItem",
    "Requirement",
    "default_requirements_for",
]
