# tablepos/menu.py

import json
import logging
from decimal import Decimal
from pathlib import Path

from tablepos.core.errors import UnknownMenuItem
from tablepos.schemas.menu import MenuCategory, MenuItem

logger = logging.getLogger("tablepos.menu")


DEFAULT_MENU = [
    {
        "category": "Navaratri Special / Snacks",
        "items": [
            {"id": "ns1", "name": "Panner Chilly", "price": "200.00"},
            {"id": "ns2", "name": "Hara Bhara Kabab (08 Pcs)", "price": "180.00"},
            {"id": "ns3", "name": "Manchurian (Dry/Gravy)", "price": "100.00"},
            {"id": "ns4", "name": "Peri Peri Fries", "price": "120.00"},
            {"id": "ns5", "name": "Fried Rice", "price": "100.00"},
            {"id": "ns6", "name": "Veg Hakka Noodles", "price": "100.00"},
            {"id": "ns7", "name": "French Fries", "price": "80.00"},
            {"id": "ns8", "name": "Vegitable Maggie", "price": "50.00"},
            {"id": "ns9", "name": "Live Dhokla", "price": "50.00"},
        ],
    },
    {
        "category": "Beverages / Shakes",
        "items": [
            {"id": "b1", "name": "Oreo Shake", "price": "100.00"},
            {"id": "b2", "name": "KitKat Shake", "price": "100.00"},
            {"id": "b3", "name": "Cold Coffee", "price": "100.00"},
            {"id": "b4", "name": "Badam Shake", "price": "80.00"},
            {"id": "b5", "name": "Cold Coco", "price": "70.00"},
            {"id": "b6", "name": "Hot Coffee", "price": "30.00"},
            {"id": "b7", "name": "Tea", "price": "20.00"},
        ],
    },
]


class MenuCatalog:
    """Read-only lookup of sellable items, keyed by their stable id."""

    def __init__(self, categories: list[MenuCategory]):
        self._categories = tuple(categories)
        self._by_id: dict[str, MenuItem] = {}

        for category in self._categories:
            for item in category.items:
                if item.id in self._by_id:
                    raise ValueError(f"Duplicate menu item id: {item.id}")
                self._by_id[item.id] = item

    @classmethod
    def from_data(cls, data) -> "MenuCatalog":
        categories = [
            MenuCategory(
                name=section["category"],
                items=[
                    MenuItem(id=item["id"], name=item["name"], price=Decimal(str(item["price"])))
                    for item in section["items"]
                ],
            )
            for section in data
        ]
        return cls(categories)

    @classmethod
    def load(cls, path: str | None = None) -> "MenuCatalog":
        if not path:
            return cls.from_data(DEFAULT_MENU)

        logger.info(f"Loading menu from {path}")
        with Path(path).open(encoding="utf-8") as fh:
            return cls.from_data(json.load(fh))

    @property
    def categories(self) -> tuple[MenuCategory, ...]:
        return self._categories

    @property
    def items(self) -> list[MenuItem]:
        return list(self._by_id.values())

    def get(self, item_id: str) -> MenuItem:
        try:
            return self._by_id[item_id]
        except KeyError:
            raise UnknownMenuItem(item_id) from None

    def __contains__(self, item_id) -> bool:
        return item_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)
