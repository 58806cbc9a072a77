"""Builds a user's affinity profile from their interaction history."""

import logging
import math
from collections import Counter, defaultdict
from datetime import datetime
from typing import Optional

from libris.config import settings
from libris.domain.entities import (
    ATTRIBUTE_GROUPS,
    EventKind,
    TimeWindow,
    UserProfile,
    utcnow,
)
from libris.ports.interaction_log import InteractionLogPort

logger = logging.getLogger(__name__)

RECENT_DAYS = 7
# Groups counted when measuring how varied a user's reading is.
DIVERSITY_GROUPS = ("category", "tag", "author")


def engagement_level(borrows: int, bookmarks: int, total: int) -> str:
    """Bucket a user by how much they interact with the catalog."""
    score = borrows * 3 + bookmarks * 2 + total
    if score > 100:
        return "power"
    if score > 50:
        return "high"
    if score > 20:
        return "medium"
    return "low"


def _normalize(weights: dict[str, float]) -> dict[str, float]:
    total = sum(weights.values())
    if total <= 0:
        return {}
    return {value: weight / total for value, weight in weights.items()}


class ProfileBuilder:
    """Turns one user's events into a recency-weighted UserProfile.

    Each event contributes `kind_weight * exp(-age_days / half_life_days)` to
    every attribute value it carries; each attribute group is then normalized
    to sum to 1 so profiles are comparable across users.
    """

    def __init__(
        self,
        log: InteractionLogPort,
        half_life_days: float = settings.decay_half_life_days,
        kind_weights: Optional[dict[str, float]] = None,
        lookback_days: int = settings.profile_lookback_days,
    ) -> None:
        self._log = log
        self._half_life_days = half_life_days
        self._kind_weights = kind_weights or settings.kind_weights
        self._lookback_days = lookback_days

    def kind_weight(self, kind: EventKind) -> float:
        return self._kind_weights.get(kind.value, 1.0)

    def decay(self, age_days: float) -> float:
        return math.exp(-max(0.0, age_days) / self._half_life_days)

    async def build(self, user_id: str, now: Optional[datetime] = None) -> UserProfile:
        now = now or utcnow()
        window = TimeWindow.trailing(self._lookback_days, now)
        events = await self._log.query_by_user(user_id, window).collect()
        if not events:
            logger.info("No interactions for user %s in the last %d days", user_id, self._lookback_days)
            return UserProfile(user_id=user_id)

        totals: dict[str, dict[str, float]] = {group: defaultdict(float) for group in ATTRIBUTE_GROUPS}
        occurrences: Counter = Counter()
        kinds: Counter = Counter()
        year_weighted = 0.0
        year_weight = 0.0
        recent = 0
        items: set[str] = set()

        for event in events:
            age_days = (now - event.timestamp).total_seconds() / 86400
            weight = self.kind_weight(event.kind) * self.decay(age_days)
            kinds[event.kind] += 1
            items.add(event.item_id)
            if age_days <= RECENT_DAYS:
                recent += 1

            for group, values in event.metadata.attributes().items():
                for value in values:
                    totals[group][value] += weight
                    if group in DIVERSITY_GROUPS:
                        occurrences[(group, value)] += 1

            if event.year:
                year_weighted += event.year * weight
                year_weight += weight

        total_occurrences = sum(occurrences.values())
        diversity = min(len(occurrences) / total_occurrences, 1.0) if total_occurrences else 0.5

        profile = UserProfile(
            user_id=user_id,
            affinities={group: _normalize(dict(weights)) for group, weights in totals.items() if weights},
            total_interactions=len(events),
            recent_interactions=recent,
            interacted_items=frozenset(items),
            preferred_year=round(year_weighted / year_weight) if year_weight > 0 else None,
            diversity=diversity,
            engagement_level=engagement_level(
                kinds[EventKind.BORROW], kinds[EventKind.BOOKMARK], len(events)
            ),
        )
        logger.debug(
            "Built profile for %s: %d events, %d items, engagement=%s",
            user_id,
            profile.total_interactions,
            len(items),
            profile.engagement_level,
        )
        return profile
