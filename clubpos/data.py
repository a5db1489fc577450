"""Static menu data."""

from __future__ import annotations

from clubpos.constant import CATEGORY_LABELS, MENU_ITEM_IDS_BY_CATEGORY, MENU_ITEM_META_BY_ID
from clubpos.models import MenuItem

MENU_ITEMS_BY_ID: dict[int, MenuItem] = {
    item_id: MenuItem(
        item_id=item_id,
        name=str(meta["name"]),
        price=float(meta["price"]),  # type: ignore[arg-type]
        aliases=tuple(meta.get("aliases", [])),  # type: ignore[arg-type]
    )
    for item_id, meta in MENU_ITEM_META_BY_ID.items()
}

MENU_BY_CATEGORY: dict[str, list[MenuItem]] = {
    category: [MENU_ITEMS_BY_ID[item_id] for item_id in item_ids]
    for category, item_ids in MENU_ITEM_IDS_BY_CATEGORY.items()
}


def category_label(category: str) -> str:
    """Get the display label for a menu category key."""
    return CATEGORY_LABELS.get(category, category)


def search_menu(category: str, query: str) -> list[MenuItem]:
    """Filter one category by name or alias substring (case-insensitive)."""
    source = MENU_BY_CATEGORY.get(category, [])
    q = query.strip().lower()
    if not q:
        return list(source)
    return [
        item
        for item in source
        if q in item.name.lower() or any(q in alias.lower() for alias in item.aliases)
    ]
