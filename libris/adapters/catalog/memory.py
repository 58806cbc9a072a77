"""Process-local catalog, seeded at construction."""

from collections.abc import Iterable
from typing import Optional

from libris.domain.entities import CatalogItem
from libris.ports.catalog import CatalogPort


class InMemoryCatalog(CatalogPort):
    def __init__(self, items: Iterable[CatalogItem] = ()) -> None:
        self._items: dict[str, CatalogItem] = {item.item_id: item for item in items}

    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        return self._items.get(item_id)

    async def list_items(self, available_only: bool = True) -> list[CatalogItem]:
        items = sorted(self._items.values(), key=lambda item: item.item_id)
        if available_only:
            return [item for item in items if item.available]
        return items
