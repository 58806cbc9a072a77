"""End-to-end behaviour of the hybrid recommender over in-memory adapters."""

import asyncio

import pytest

from libris.adapters.catalog.memory import InMemoryCatalog
from libris.adapters.interaction_log.memory import InMemoryInteractionLog
from libris.adapters.recommender.hybrid import HybridRecommenderAdapter
from libris.config import Settings
from libris.domain.entities import (
    CatalogItem,
    Context,
    EventKind,
    RecommendationRequest,
    Strategy,
)
from libris.domain.errors import InvalidArgument, Unauthorized, UpstreamReadFailure
from libris.ports.interaction_log import EventSequence


class UnreadableUserLog(InMemoryInteractionLog):
    """Per-user reads fail; item and window reads still work."""

    def query_by_user(self, user_id, window):
        async def iterate():
            raise UpstreamReadFailure("user history unavailable")
            yield  # pragma: no cover

        return EventSequence(iterate)


@pytest.fixture
def library():
    return InMemoryCatalog(
        [
            CatalogItem("dune", "Dune", categories=("Sci-Fi",), author="Herbert"),
            CatalogItem("hyperion", "Hyperion", categories=("Sci-Fi",), author="Simmons"),
            CatalogItem("foundation", "Foundation", categories=("Sci-Fi",), author="Asimov"),
            CatalogItem("emma", "Emma", categories=("Classics",), author="Austen"),
            CatalogItem("persuasion", "Persuasion", categories=("Classics",), author="Austen"),
            CatalogItem("sapiens", "Sapiens", categories=("History",), author="Harari"),
        ]
    )


@pytest.fixture
def history(make_event):
    sci_fi = {"categories": ["Sci-Fi"]}
    return [
        make_event("reader-1", "dune", EventKind.BORROW, days_ago=2, author="Herbert", **sci_fi),
        make_event("reader-2", "dune", EventKind.VIEW, days_ago=3, **sci_fi),
        make_event("reader-2", "hyperion", EventKind.BORROW, days_ago=3, **sci_fi),
        make_event("reader-3", "emma", EventKind.VIEW, days_ago=1, categories=["Classics"]),
        make_event("reader-4", "emma", EventKind.BORROW, days_ago=5, categories=["Classics"]),
        make_event("reader-4", "sapiens", EventKind.VIEW, days_ago=6, categories=["History"]),
    ]


@pytest.fixture
def engine_for(library, now):
    def _engine(log, catalog=None, **overrides) -> HybridRecommenderAdapter:
        config = Settings(**overrides)
        return HybridRecommenderAdapter(log, catalog or library, config=config, clock=lambda: now)

    return _engine


async def test_personal_recommendations(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    result = await engine.recommend(RecommendationRequest(user_id="reader-1", limit=5))

    ids = [r.item_id for r in result.recommendations]
    assert 0 < len(ids) <= 5
    assert ids[0] == "hyperion"
    assert Strategy.COLLABORATIVE in result.recommendations[0].sources
    assert result.profile["total_interactions"] == 1
    assert result.profile["top_categories"] == ["Sci-Fi"]
    # reader-1's profile is fully diverse, so categories are capped at 1 of 5
    # and the other Sci-Fi titles only fill the tail.
    assert ids == ["hyperion", "emma", "sapiens", "dune", "foundation"]
    assert result.recommendations[0].reason == "You love Sci-Fi"


async def test_exclusions_never_returned(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    result = await engine.recommend(
        RecommendationRequest(
            user_id="reader-1",
            exclude_book_ids=["hyperion", "emma"],
            context=Context.BOOK_DETAIL,
            book_id="foundation",
        )
    )
    ids = {r.item_id for r in result.recommendations}
    assert ids.isdisjoint({"hyperion", "emma", "foundation"})


async def test_book_detail_uses_reference_book(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    result = await engine.recommend(
        RecommendationRequest(user_id="reader-1", context=Context.BOOK_DETAIL, book_id="emma")
    )
    persuasion = next(r for r in result.recommendations if r.item_id == "persuasion")
    assert Strategy.CONTENT in persuasion.sources


async def test_cold_start_falls_back_to_popularity(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    result = await engine.recommend(RecommendationRequest(user_id="newcomer"))

    assert result.profile is None
    assert result.recommendations
    for rec in result.recommendations:
        assert set(rec.sources) <= {Strategy.POPULARITY, Strategy.ENGAGEMENT}


async def test_cold_catalog_returns_empty(engine_for):
    engine = engine_for(InMemoryInteractionLog(), InMemoryCatalog())
    result = await engine.recommend(RecommendationRequest(user_id="reader-1"))
    assert result.recommendations == []
    assert result.profile is None


async def test_repeated_requests_are_identical(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    request = RecommendationRequest(user_id="reader-1", limit=4)
    first = await engine.recommend(request)
    second = await engine.recommend(request)
    assert first.recommendations == second.recommendations


async def test_failing_generator_is_treated_as_empty(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))

    async def broken(now):
        raise RuntimeError("boom")

    engine._popularity.generate = broken
    result = await engine.recommend(RecommendationRequest(user_id="reader-1"))

    assert result.recommendations
    assert all(Strategy.POPULARITY not in r.sources for r in result.recommendations)


async def test_slow_generator_times_out(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history), generator_timeout_seconds=0.05)

    async def stalled(now):
        await asyncio.sleep(5)
        return []

    engine._engagement.generate = stalled
    result = await engine.recommend(RecommendationRequest(user_id="reader-1"))

    assert result.recommendations
    assert all(Strategy.ENGAGEMENT not in r.sources for r in result.recommendations)


async def test_profile_read_failure_degrades_to_fallback(engine_for, history):
    engine = engine_for(UnreadableUserLog(history))
    result = await engine.recommend(RecommendationRequest(user_id="reader-1"))

    assert result.profile is None
    assert result.recommendations


async def test_all_generators_failing_returns_empty(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))

    async def broken(*args, **kwargs):
        raise UpstreamReadFailure("down")

    engine._collaborative.generate = broken
    engine._content.generate = broken
    engine._popularity.generate = broken
    engine._engagement.generate = broken
    result = await engine.recommend(RecommendationRequest(user_id="reader-1"))

    assert result.recommendations == []


async def test_missing_user_is_unauthorized(engine_for):
    engine = engine_for(InMemoryInteractionLog())
    with pytest.raises(Unauthorized):
        await engine.recommend(RecommendationRequest(user_id=""))


@pytest.mark.parametrize("limit", [0, -1, 21])
async def test_limit_out_of_range(engine_for, limit):
    engine = engine_for(InMemoryInteractionLog())
    with pytest.raises(InvalidArgument):
        await engine.recommend(RecommendationRequest(user_id="reader-1", limit=limit))


async def test_unknown_context(engine_for):
    engine = engine_for(InMemoryInteractionLog())
    with pytest.raises(InvalidArgument):
        await engine.recommend(RecommendationRequest(user_id="reader-1", context="sidebar"))


async def test_new_reader_gets_more_like_this_on_book_page(engine_for):
    engine = engine_for(InMemoryInteractionLog())
    result = await engine.recommend(
        RecommendationRequest(user_id="new-reader", context=Context.BOOK_DETAIL, book_id="emma")
    )

    assert result.profile is None
    assert [r.item_id for r in result.recommendations] == ["persuasion"]
    assert result.recommendations[0].sources == (Strategy.CONTENT,)
    assert result.recommendations[0].reason == "Also by Austen"


async def test_unknown_book_page_for_new_reader(engine_for):
    engine = engine_for(InMemoryInteractionLog())
    result = await engine.recommend(
        RecommendationRequest(user_id="new-reader", context=Context.BOOK_DETAIL, book_id="missing")
    )
    assert result.recommendations == []


async def test_reference_lookup_failure_falls_back_to_profile(engine_for, history, library):
    class UnreachableCatalog(InMemoryCatalog):
        async def get_item(self, item_id):
            raise UpstreamReadFailure("catalog down")

    catalog = UnreachableCatalog(await library.list_items(available_only=False))
    engine = engine_for(InMemoryInteractionLog(history), catalog)
    result = await engine.recommend(
        RecommendationRequest(user_id="reader-1", context=Context.BOOK_DETAIL, book_id="sapiens")
    )

    ids = [r.item_id for r in result.recommendations]
    assert "sapiens" not in ids
    assert "hyperion" in ids


async def test_fallback_reasons_name_the_signal(engine_for, history):
    engine = engine_for(InMemoryInteractionLog(history))
    result = await engine.recommend(RecommendationRequest(user_id="newcomer"))
    # Every logged event is from the last week, so everything is trending.
    assert {r.reason for r in result.recommendations} == {"Trending now"}
