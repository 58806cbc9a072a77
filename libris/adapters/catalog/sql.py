"""Catalog backed by the `books` table."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libris.domain.entities import CatalogItem
from libris.domain.errors import UpstreamReadFailure
from libris.domain.models import Book
from libris.ports.catalog import CatalogPort

logger = logging.getLogger(__name__)


def _to_item(book: Book) -> CatalogItem:
    return CatalogItem(
        item_id=book.id,
        title=book.title,
        categories=tuple(book.categories or ()),
        tags=tuple(book.tags or ()),
        author=book.author,
        format=book.format,
        publisher=book.publisher,
        year=book.year,
        available=bool(book.available),
    )


class SqlCatalog(CatalogPort):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_item(self, item_id: str) -> Optional[CatalogItem]:
        try:
            async with self._session_factory() as session:
                book = await session.get(Book, item_id)
        except SQLAlchemyError as exc:
            logger.error("Catalog lookup failed for %s: %s", item_id, exc)
            raise UpstreamReadFailure(str(exc)) from exc
        return _to_item(book) if book else None

    async def list_items(self, available_only: bool = True) -> list[CatalogItem]:
        stmt = select(Book).order_by(Book.id)
        if available_only:
            stmt = stmt.where(Book.available.is_(True))
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                books = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Catalog listing failed: %s", exc)
            raise UpstreamReadFailure(str(exc)) from exc
        return [_to_item(book) for book in books]
