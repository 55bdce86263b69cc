"""
Built-in menu and stock requirement table.

Used to seed an empty database and as the fallback when a menu item has no
requirement rows of its own. Once an item has explicit requirements the
table is ignored for it.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.config.constants import StockCategory


@dataclass(frozen=True)
class Requirement:
    stock_item_name: str
    quantity_per_unit: int


@dataclass(frozen=True)
class DefaultMenuItem:
    name: str
    description: str
    price_cents: int
    category: str
    preparation_time: int
    requirements: tuple[Requirement, ...]
    hidden_from_customers: bool = False


def _req(*pairs: tuple[str, int]) -> tuple[Requirement, ...]:
    return tuple(Requirement(name, qty) for name, qty in pairs)


DEFAULT_MENU: tuple[DefaultMenuItem, ...] = (
    # Main Courses
    DefaultMenuItem(
        "Deluxe Steak & Fries",
        "Premium quality steak with our signature fries and special seasoning",
        2000, "Main Courses", 25, _req(("Steaks", 1), ("Fries", 1)),
    ),
    DefaultMenuItem(
        "Steak & Fries",
        "Premium steak served with crispy fries and signature seasoning",
        1200, "Main Courses", 20, _req(("Steaks", 1), ("Fries", 1)),
    ),
    DefaultMenuItem(
        "Steak Only", "Premium steak served alone",
        1000, "Main Courses", 20, _req(("Steaks", 1)),
    ),
    DefaultMenuItem(
        "Signature Fries", "Crispy fries with our signature seasoning",
        400, "Main Courses", 10, _req(("Fries", 1)),
    ),
    # Add-ons
    DefaultMenuItem(
        "Green Sauce", "Extra green sauce add-on",
        200, "Add-ons", 0, _req(("Green Sauce", 1)),
    ),
    DefaultMenuItem(
        "Red Sauce", "Extra red sauce add-on",
        200, "Add-ons", 0, _req(("Red Sauce", 1)),
    ),
    DefaultMenuItem(
        "Steak", "Extra steak add-on",
        1000, "Add-ons", 20, _req(("Steaks", 1)),
    ),
    DefaultMenuItem(
        "Short Rib", "Extra short rib add-on",
        1200, "Add-ons", 25, _req(("Short Rib", 1)),
    ),
    DefaultMenuItem(
        "Lamb Chop", "Extra lamb chop add-on",
        1400, "Add-ons", 25, _req(("Lamb", 1)),
    ),
    # Kids
    DefaultMenuItem(
        "Kids Meal", "Specially curated meal for kids",
        1000, "Kids", 15, _req(("Steaks", 1), ("Fries", 1)),
    ),
    DefaultMenuItem(
        "Kids Fries", "Perfect portion of crispy fries made just for kids",
        200, "Kids", 8, _req(("Fries", 1)),
    ),
    DefaultMenuItem(
        "£1 Steak Cone", "Small portion of steak in a convenient cone",
        100, "Kids", 12, _req(("Steaks", 1)),
        hidden_from_customers=True,
    ),
    # Drinks
    DefaultMenuItem(
        "Coke", "Classic Coca-Cola soft drink",
        150, "Drinks", 0, _req(("Coke / Pepsi", 1)),
    ),
    DefaultMenuItem(
        "Coke Zero", "Zero sugar Coca-Cola soft drink",
        150, "Drinks", 0, _req(("Coke Zero", 1)),
    ),
    DefaultMenuItem(
        "Tango Mango", "Tango Mango flavored soft drink",
        150, "Drinks", 0, _req(("Tango Mango", 1)),
    ),
)

# Stock items the default menu draws on, with their back-office category
DEFAULT_STOCK_ITEMS: dict[str, str] = {
    "Steaks": StockCategory.MEAT,
    "Short Rib": StockCategory.MEAT,
    "Lamb": StockCategory.MEAT,
    "Fries": StockCategory.SIDES,
    "Green Sauce": StockCategory.SAUCES,
    "Red Sauce": StockCategory.SAUCES,
    "Coke / Pepsi": StockCategory.DRINKS,
    "Coke Zero": StockCategory.DRINKS,
    "Tango Mango": StockCategory.DRINKS,
}

_BY_NAME: dict[str, DefaultMenuItem] = {item.name: item for item in DEFAULT_MENU}


def default_requirements_for(menu_item_name: str) -> list[Requirement]:
    """Requirements from the built-in table, empty for unknown items."""
    item = _BY_NAME.get(menu_item_name)
    return list(item.requirements) if item else []
