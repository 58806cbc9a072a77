"""Hybrid recommender: four concurrent candidate generators joined by a blender."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import Optional

from libris.adapters.recommender.blender import blend, explain
from libris.adapters.recommender.strategies import (
    CollaborativeGenerator,
    ContentGenerator,
    EngagementGenerator,
    PopularityGenerator,
)
from libris.config import Settings, settings as default_settings
from libris.domain.entities import (
    Candidate,
    Context,
    ItemMetadata,
    RecommendationRequest,
    RecommendationResult,
    Strategy,
    TimeWindow,
    UserProfile,
    utcnow,
)
from libris.domain.errors import InvalidArgument, Unauthorized, UpstreamReadFailure
from libris.ports.catalog import CatalogPort
from libris.ports.interaction_log import InteractionLogPort
from libris.ports.recommender import RecommenderPort
from libris.services.profile import ProfileBuilder

logger = logging.getLogger(__name__)


class HybridRecommenderAdapter(RecommenderPort):
    """Blends collaborative, content, popularity and trending signals.

    Users without history get the popularity/trending fallback, plus "more
    like this" on a book page, and a `None` profile. A generator that fails
    or times out contributes nothing; the request still succeeds.
    """

    def __init__(
        self,
        log: InteractionLogPort,
        catalog: CatalogPort,
        config: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._config = config or default_settings
        self._log = log
        self._catalog = catalog
        self._clock = clock
        cfg = self._config
        self._profiles = ProfileBuilder(
            log,
            half_life_days=cfg.decay_half_life_days,
            kind_weights=cfg.kind_weights,
            lookback_days=cfg.profile_lookback_days,
        )
        self._collaborative = CollaborativeGenerator(
            log, cfg.kind_weights, cfg.collaborative_max_neighbors, cfg.fanout_limit
        )
        self._content = ContentGenerator(catalog, cfg.content_group_weights, cfg.fanout_limit)
        self._popularity = PopularityGenerator(log, cfg.popularity_window_days, cfg.fanout_limit)
        self._engagement = EngagementGenerator(
            log,
            cfg.trending_recent_days,
            cfg.trending_baseline_days,
            cfg.trending_min_ratio,
            cfg.fanout_limit,
        )

    def _validate(self, request: RecommendationRequest) -> None:
        if not request.user_id:
            raise Unauthorized("An identified user is required for recommendations")
        if not 1 <= request.limit <= self._config.max_limit:
            raise InvalidArgument(f"limit must be between 1 and {self._config.max_limit}")
        if not isinstance(request.context, Context):
            raise InvalidArgument(f"Unknown context: {request.context!r}")

    async def _build_profile(self, user_id: str, now: datetime) -> UserProfile:
        try:
            return await self._profiles.build(user_id, now)
        except UpstreamReadFailure as exc:
            logger.warning("Profile read failed for %s, using fallback: %s", user_id, exc)
            return UserProfile(user_id=user_id)

    async def _reference_item(self, book_id: str, now: datetime) -> Optional[ItemMetadata]:
        """Attributes of the book being viewed, from the catalog or the log."""
        try:
            item = await self._catalog.get_item(book_id)
            if item is not None:
                return item.metadata
            window = TimeWindow.trailing(self._config.profile_lookback_days, now)
            events = await self._log.query_by_item(book_id, window).collect()
        except UpstreamReadFailure as exc:
            logger.warning("Reference lookup failed for %s: %s", book_id, exc)
            return None
        return events[-1].metadata if events else None

    async def _guarded(self, strategy: Strategy, work: Awaitable[list[Candidate]]) -> list[Candidate]:
        """Run one generator; a timeout or error becomes an empty contribution."""
        try:
            return await asyncio.wait_for(work, timeout=self._config.generator_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Generator %s timed out after %.1fs, treating as empty",
                strategy.value,
                self._config.generator_timeout_seconds,
            )
        except Exception as exc:
            logger.warning(
                "Generator %s failed, treating as empty: %s", strategy.value, exc, exc_info=True
            )
        return []

    async def _skip(self) -> list[Candidate]:
        return []

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """Return ranked book recommendations for a user."""
        self._validate(request)
        now = self._clock()
        profile = await self._build_profile(request.user_id, now)
        personal = not profile.is_empty
        window = TimeWindow.trailing(self._config.profile_lookback_days, now)

        reference = None
        if request.context is Context.BOOK_DETAIL and request.book_id:
            reference = await self._reference_item(request.book_id, now)

        # "More like this" needs only the viewed book, so it runs for new users too.
        if reference is not None:
            content_work = self._content.generate(profile, (request.book_id, reference))
        elif personal:
            content_work = self._content.generate(profile)
        else:
            content_work = self._skip()

        collaborative, content, popularity, engagement = await asyncio.gather(
            self._guarded(
                Strategy.COLLABORATIVE,
                self._collaborative.generate(profile, window) if personal else self._skip(),
            ),
            self._guarded(Strategy.CONTENT, content_work),
            self._guarded(Strategy.POPULARITY, self._popularity.generate(now)),
            self._guarded(Strategy.ENGAGEMENT, self._engagement.generate(now)),
        )
        candidates = {
            Strategy.COLLABORATIVE: collaborative,
            Strategy.CONTENT: content,
            Strategy.POPULARITY: popularity,
            Strategy.ENGAGEMENT: engagement,
        }

        exclude = set(request.exclude_book_ids)
        if request.book_id:
            exclude.add(request.book_id)
        ranked = blend(
            candidates,
            weights=self._config.strategy_weights,
            exclude=exclude,
            limit=request.limit,
            cap_share=self._config.diversity_cap,
            author_cap_share=self._config.author_diversity_cap,
            tighten=personal and profile.diversity > self._config.diverse_reader_threshold,
        )
        ranked = [
            replace(item, reason=explain(item, profile if personal else None, reference))
            for item in ranked
        ]

        logger.info(
            "Recommendations for %s: %d items (context=%s, fallback=%s, candidates=%s)",
            request.user_id,
            len(ranked),
            request.context.value,
            not personal,
            {s.value: len(c) for s, c in candidates.items()},
        )
        return RecommendationResult(
            recommendations=ranked,
            profile=profile.snapshot() if personal else None,
        )
