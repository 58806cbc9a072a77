"""Interaction log port: append-only store of user/item events."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable

from libris.domain.entities import InteractionEvent, TimeWindow
from libris.domain.errors import ValidationError


def validate_event(event: InteractionEvent) -> None:
    """Reject events that cannot be attributed to a user and an item."""
    if not event.user_id or not str(event.user_id).strip():
        raise ValidationError("user_id is required to record an interaction")
    if not event.item_id or not str(event.item_id).strip():
        raise ValidationError("item_id is required to record an interaction")


class EventSequence:
    """Lazy, restartable sequence of events.

    Nothing is read until iteration starts, and every new iteration re-runs
    the underlying query.
    """

    def __init__(self, factory: Callable[[], AsyncIterator[InteractionEvent]]) -> None:
        self._factory = factory

    def __aiter__(self) -> AsyncIterator[InteractionEvent]:
        return self._factory()

    async def collect(self) -> list[InteractionEvent]:
        return [event async for event in self]


class InteractionLogPort(ABC):
    """Abstraction over the interaction log. There is no update or delete."""

    @abstractmethod
    async def record(self, event: InteractionEvent) -> None:
        """Append one event. Raises ValidationError on missing identifiers."""
        ...

    @abstractmethod
    def query_by_user(self, user_id: str, window: TimeWindow) -> EventSequence:
        """Events of one user inside `window`, oldest first."""
        ...

    @abstractmethod
    def query_by_item(self, item_id: str, window: TimeWindow) -> EventSequence:
        """Events on one item inside `window`, oldest first."""
        ...

    @abstractmethod
    def query_window(self, window: TimeWindow) -> EventSequence:
        """Every event inside `window`, oldest first."""
        ...
