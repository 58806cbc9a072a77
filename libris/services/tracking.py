"""Interaction tracking service: the write path into the interaction log."""

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime

from libris.api.schemas import InteractionCreateRequest
from libris.domain.entities import EventKind, InteractionEvent, TimeWindow, utcnow
from libris.domain.errors import ValidationError
from libris.ports.interaction_log import InteractionLogPort

logger = logging.getLogger(__name__)


class InteractionTracker:
    """Turns tracker payloads into InteractionEvents and appends them."""

    def __init__(self, log: InteractionLogPort, clock: Callable[[], datetime] = utcnow) -> None:
        self._log = log
        self._clock = clock

    async def track(self, user_id: str, data: InteractionCreateRequest) -> bool:
        """
        Record one interaction for `user_id`.

        Missing identifiers raise ValidationError. Any other failure is logged
        and reported as False; tracking never breaks the caller's request.
        """
        if not user_id:
            raise ValidationError("user_id is required to track an interaction")

        event = InteractionEvent(
            user_id=user_id,
            item_id=data.item_id.strip(),
            kind=data.event_kind,
            timestamp=self._clock(),
            categories=tuple(data.categories),
            tags=tuple(data.tags),
            author=data.author,
            format=data.format,
            publisher=data.publisher,
            year=data.year,
        )
        try:
            await self._log.record(event)
        except ValidationError:
            raise
        except Exception:
            logger.exception(
                "Failed to track %s for user=%s item=%s", event.kind.value, user_id, event.item_id
            )
            return False

        logger.info("Tracked %s: user=%s item=%s", event.kind.value, user_id, event.item_id)
        return True

    async def summary(self, user_id: str, days: int = 90) -> dict[str, int]:
        """Count a user's events per kind over the last `days` days."""
        window = TimeWindow.trailing(days, self._clock())
        counts: Counter = Counter()
        async for event in self._log.query_by_user(user_id, window):
            counts[event.kind.value] += 1
        return {kind.value: counts.get(kind.value, 0) for kind in EventKind}
