"""Process-local interaction log."""

import logging
import threading
from collections.abc import AsyncIterator, Callable, Iterable

from libris.domain.entities import InteractionEvent, TimeWindow
from libris.ports.interaction_log import EventSequence, InteractionLogPort, validate_event

logger = logging.getLogger(__name__)


class InMemoryInteractionLog(InteractionLogPort):
    """Keep events in a list. Appends are serialized; reads work on a snapshot."""

    def __init__(self, events: Iterable[InteractionEvent] = ()) -> None:
        self._events: list[InteractionEvent] = []
        self._lock = threading.Lock()
        for event in events:
            validate_event(event)
            self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    async def record(self, event: InteractionEvent) -> None:
        """Append an event to the in-memory log."""
        validate_event(event)
        with self._lock:
            self._events.append(event)
        logger.debug(
            "Recorded %s event: user=%s item=%s", event.kind.value, event.user_id, event.item_id
        )

    def _select(self, window: TimeWindow, match: Callable[[InteractionEvent], bool]) -> EventSequence:
        async def iterate() -> AsyncIterator[InteractionEvent]:
            with self._lock:
                snapshot = list(self._events)
            selected = [e for e in snapshot if window.contains(e.timestamp) and match(e)]
            selected.sort(key=lambda e: e.timestamp)
            for event in selected:
                yield event

        return EventSequence(iterate)

    def query_by_user(self, user_id: str, window: TimeWindow) -> EventSequence:
        return self._select(window, lambda e: e.user_id == user_id)

    def query_by_item(self, item_id: str, window: TimeWindow) -> EventSequence:
        return self._select(window, lambda e: e.item_id == item_id)

    def query_window(self, window: TimeWindow) -> EventSequence:
        return self._select(window, lambda e: True)
