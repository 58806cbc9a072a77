"""Catalog port: read-only access to the books collection."""

from abc import ABC, abstractmethod
from typing import Optional

from libris.domain.entities import CatalogItem


class CatalogPort(ABC):
    @abstractmethod
    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        ...

    @abstractmethod
    async def list_items(self, available_only: bool = True) -> list[CatalogItem]:
        ...
