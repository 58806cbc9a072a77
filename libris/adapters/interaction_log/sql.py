"""Interaction log backed by the `user_interactions` table."""

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libris.domain.entities import EventKind, InteractionEvent, TimeWindow
from libris.domain.errors import UpstreamReadFailure
from libris.domain.models import UserInteraction
from libris.ports.interaction_log import EventSequence, InteractionLogPort, validate_event

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _to_event(row: UserInteraction) -> InteractionEvent:
    return InteractionEvent(
        user_id=row.user_id,
        item_id=row.book_id,
        kind=EventKind(row.interaction_type),
        timestamp=_as_utc(row.created_at),
        categories=tuple(row.categories or ()),
        tags=tuple(row.tags or ()),
        author=row.author,
        format=row.format,
        publisher=row.publisher,
        year=row.year,
    )


class SqlInteractionLog(InteractionLogPort):
    """Each call opens its own session, so concurrent generators never share one."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: InteractionEvent) -> None:
        """Insert one row. Rows are never updated afterwards."""
        validate_event(event)
        row = UserInteraction(
            user_id=event.user_id,
            book_id=event.item_id,
            interaction_type=event.kind.value,
            categories=list(event.categories),
            tags=list(event.tags),
            author=event.author,
            format=event.format,
            publisher=event.publisher,
            year=event.year,
            created_at=_as_utc(event.timestamp),
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        logger.debug(
            "Recorded %s event: user=%s item=%s", event.kind.value, event.user_id, event.item_id
        )

    def _select(self, window: TimeWindow, *criteria) -> EventSequence:
        stmt = (
            select(UserInteraction)
            .where(
                UserInteraction.created_at >= _as_utc(window.start),
                UserInteraction.created_at <= _as_utc(window.end),
                *criteria,
            )
            .order_by(UserInteraction.created_at.asc(), UserInteraction.id.asc())
        )

        async def iterate() -> AsyncIterator[InteractionEvent]:
            try:
                async with self._session_factory() as session:
                    result = await session.execute(stmt)
                    rows = list(result.scalars().all())
            except SQLAlchemyError as exc:
                logger.error("Interaction log query failed: %s", exc)
                raise UpstreamReadFailure(str(exc)) from exc
            for row in rows:
                yield _to_event(row)

        return EventSequence(iterate)

    def query_by_user(self, user_id: str, window: TimeWindow) -> EventSequence:
        return self._select(window, UserInteraction.user_id == user_id)

    def query_by_item(self, item_id: str, window: TimeWindow) -> EventSequence:
        return self._select(window, UserInteraction.book_id == item_id)

    def query_window(self, window: TimeWindow) -> EventSequence:
        return self._select(window)
