"""Candidate generators. Each one proposes items from a single signal source."""

import asyncio
import logging
import math
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from libris.domain.entities import (
    Candidate,
    EventKind,
    InteractionEvent,
    ItemMetadata,
    Strategy,
    TimeWindow,
    UserProfile,
)
from libris.ports.catalog import CatalogPort
from libris.ports.interaction_log import InteractionLogPort

logger = logging.getLogger(__name__)


def rank_candidates(
    scores: dict[str, float],
    metadata: dict[str, ItemMetadata],
    source: Strategy,
    limit: int,
) -> list[Candidate]:
    """Highest score first, ties by item id, cut to `limit`."""
    ordered = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))
    return [
        Candidate(
            item_id=item_id,
            source=source,
            raw_score=score,
            metadata=metadata.get(item_id, ItemMetadata()),
        )
        for item_id, score in ordered[:limit]
    ]


def latest_metadata(events: Iterable[InteractionEvent]) -> dict[str, ItemMetadata]:
    """Most recent attribute snapshot per item (events are oldest first)."""
    snapshots: dict[str, ItemMetadata] = {}
    for event in events:
        snapshots[event.item_id] = event.metadata
    return snapshots


class CollaborativeGenerator:
    """Users who read what you read also read ...

    Neighbors are weighted by the Jaccard similarity of their item set with
    the target user's; every neighbor event on an unseen item adds
    `similarity * kind_weight` to that item.
    """

    source = Strategy.COLLABORATIVE

    def __init__(
        self,
        log: InteractionLogPort,
        kind_weights: dict[str, float],
        max_neighbors: int,
        fanout: int,
    ) -> None:
        self._log = log
        self._kind_weights = kind_weights
        self._max_neighbors = max_neighbors
        self._fanout = fanout

    def _weight(self, kind: EventKind) -> float:
        return self._kind_weights.get(kind.value, 1.0)

    async def generate(self, profile: UserProfile, window: TimeWindow) -> list[Candidate]:
        target = set(profile.interacted_items)
        if not target:
            return []

        item_events = await asyncio.gather(
            *(self._log.query_by_item(item_id, window).collect() for item_id in sorted(target))
        )
        # Shortlist by how many target items each co-reader touched, so only
        # max_neighbors histories are read.
        shared: Counter = Counter()
        for events in item_events:
            for user_id in {e.user_id for e in events if e.user_id != profile.user_id}:
                shared[user_id] += 1
        if not shared:
            return []
        neighbor_ids = [
            user_id
            for user_id, _ in sorted(shared.items(), key=lambda kv: (-kv[1], kv[0]))[: self._max_neighbors]
        ]

        neighbor_events = await asyncio.gather(
            *(self._log.query_by_user(user_id, window).collect() for user_id in neighbor_ids)
        )

        neighbors: list[tuple[str, float, list[InteractionEvent]]] = []
        for user_id, events in zip(neighbor_ids, neighbor_events):
            items = {e.item_id for e in events}
            similarity = len(target & items) / len(target | items) if items else 0.0
            if similarity > 0:
                neighbors.append((user_id, similarity, events))
        neighbors.sort(key=lambda n: (-n[1], n[0]))
        neighbors = neighbors[: self._max_neighbors]

        scores: dict[str, float] = defaultdict(float)
        metadata: dict[str, ItemMetadata] = {}
        for _, similarity, events in neighbors:
            for event in events:
                if event.item_id in target:
                    continue
                scores[event.item_id] += similarity * self._weight(event.kind)
                metadata[event.item_id] = event.metadata

        logger.debug(
            "Collaborative: %d neighbors, %d candidate items for %s",
            len(neighbors),
            len(scores),
            profile.user_id,
        )
        return rank_candidates(scores, metadata, self.source, self._fanout)


class ContentGenerator:
    """Scores catalog items by attribute overlap with a reference vector.

    The reference is the user's profile, or a single book's attributes when
    the caller asks for items like that book.
    """

    source = Strategy.CONTENT

    def __init__(
        self,
        catalog: CatalogPort,
        group_weights: dict[str, float],
        fanout: int,
    ) -> None:
        self._catalog = catalog
        self._group_weights = group_weights
        self._fanout = fanout

    @staticmethod
    def item_vector(metadata: ItemMetadata) -> dict[str, dict[str, float]]:
        """Spread weight 1 evenly over the values of each attribute group."""
        vector: dict[str, dict[str, float]] = {}
        for group, values in metadata.attributes().items():
            unique = sorted(set(values))
            if unique:
                vector[group] = {value: 1.0 / len(unique) for value in unique}
        return vector

    def score(self, reference: dict[str, dict[str, float]], metadata: ItemMetadata) -> float:
        total = 0.0
        for group, values in metadata.attributes().items():
            weights = reference.get(group)
            if not weights:
                continue
            overlap = sum(weights.get(value, 0.0) for value in set(values))
            total += self._group_weights.get(group, 0.0) * overlap
        return total

    async def generate(
        self,
        profile: UserProfile,
        reference_item: Optional[tuple[str, ItemMetadata]] = None,
    ) -> list[Candidate]:
        if reference_item is not None:
            reference_id, reference_metadata = reference_item
            reference = self.item_vector(reference_metadata)
        else:
            reference_id = None
            reference = profile.affinities
        if not reference:
            return []

        scores: dict[str, float] = {}
        metadata: dict[str, ItemMetadata] = {}
        for item in await self._catalog.list_items(available_only=True):
            if item.item_id in profile.interacted_items or item.item_id == reference_id:
                continue
            score = self.score(reference, item.metadata)
            if score > 0:
                scores[item.item_id] = score
                metadata[item.item_id] = item.metadata

        return rank_candidates(scores, metadata, self.source, self._fanout)


class PopularityGenerator:
    """Most-interacted items over a trailing window, log-scaled."""

    source = Strategy.POPULARITY

    def __init__(self, log: InteractionLogPort, window_days: int, fanout: int) -> None:
        self._log = log
        self._window_days = window_days
        self._fanout = fanout

    async def generate(self, now: datetime) -> list[Candidate]:
        events = await self._log.query_window(TimeWindow.trailing(self._window_days, now)).collect()
        counts = Counter(e.item_id for e in events)
        scores = {item_id: math.log1p(count) for item_id, count in counts.items()}
        return rank_candidates(scores, latest_metadata(events), self.source, self._fanout)


class EngagementGenerator:
    """Items whose recent interaction rate outpaces their baseline rate."""

    source = Strategy.ENGAGEMENT

    def __init__(
        self,
        log: InteractionLogPort,
        recent_days: int,
        baseline_days: int,
        min_ratio: float,
        fanout: int,
    ) -> None:
        self._log = log
        self._recent_days = recent_days
        self._baseline_days = baseline_days
        self._min_ratio = min_ratio
        self._fanout = fanout

    async def generate(self, now: datetime) -> list[Candidate]:
        events = await self._log.query_window(TimeWindow.trailing(self._baseline_days, now)).collect()
        recent_start = now - timedelta(days=self._recent_days)

        baseline = Counter(e.item_id for e in events)
        recent = Counter(e.item_id for e in events if e.timestamp >= recent_start)

        scores: dict[str, float] = {}
        for item_id, recent_count in recent.items():
            recent_rate = recent_count / self._recent_days
            baseline_rate = baseline[item_id] / self._baseline_days
            ratio = recent_rate / baseline_rate
            if ratio >= self._min_ratio:
                scores[item_id] = ratio

        return rank_candidates(scores, latest_metadata(events), self.source, self._fanout)
