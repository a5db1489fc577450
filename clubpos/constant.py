"""Editable static menu catalog and backend field aliases."""

from __future__ import annotations

# Canonical item metadata values consumed by clubpos.data (which wraps these into MenuItem instances).
MENU_ITEM_META_BY_ID: dict[int, dict[str, str | float | list[str]]] = {
    1: {"name": "Beer", "price": 120.0, "aliases": ["br", "san mig"]},
    2: {"name": "Light Beer", "price": 120.0, "aliases": ["lite"]},
    3: {"name": "Beer Bucket", "price": 650.0, "aliases": ["bkt", "bucket"]},
    4: {"name": "Rum Coke", "price": 180.0, "aliases": ["rc"]},
    5: {"name": "Margarita", "price": 220.0, "aliases": ["marg"]},
    6: {"name": "Tequila Shot", "price": 150.0, "aliases": ["teq", "shot"]},
    7: {"name": "Iced Tea", "price": 80.0, "aliases": ["tea"]},
    8: {"name": "Bottled Water", "price": 50.0, "aliases": ["water", "wt"]},
    20: {"name": "Sisig", "price": 280.0, "aliases": ["ssg"]},
    21: {"name": "Chicharon Bulaklak", "price": 260.0, "aliases": ["chich"]},
    22: {"name": "Calamares", "price": 240.0, "aliases": ["cala"]},
    23: {"name": "Nachos", "price": 220.0, "aliases": ["nach"]},
    24: {"name": "French Fries", "price": 150.0, "aliases": ["ff", "fries"]},
    25: {"name": "Pulutan Platter", "price": 750.0, "aliases": ["platter"]},
}

MENU_ITEM_IDS_BY_CATEGORY: dict[str, list[int]] = {
    "D": [1, 2, 3, 4, 5, 6, 7, 8],
    "F": [20, 21, 22, 23, 24, 25],
}

CATEGORY_LABELS: dict[str, str] = {
    "D": "Drinks",
    "F": "Food",
}

# Backend rows are not uniform; first present key wins.
RESOURCE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "table_id"),
    "name": ("name", "guest_name"),
    "table_number": ("table_number", "table_no", "id"),
    "party_size": ("party_size", "pax", "seats"),
    "status": ("status", "reservation_status"),
    "price": ("price",),
}

RESOURCE_KINDS = ("available", "reserved", "all")
