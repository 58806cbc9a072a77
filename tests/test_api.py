"""Integration tests for the Libris API."""

import pytest
from httpx import AsyncClient

from libris.api.middleware.auth import create_access_token
from libris.domain.entities import EventKind, utcnow


async def _seed(log, make_event, *rows):
    for user_id, item_id, kind, attrs in rows:
        await log.record(make_event(user_id, item_id, kind, days_ago=1, at=utcnow(), **attrs))


# ── System ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "service": "libris"}


# ── Auth ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_recommendations_require_token(client: AsyncClient):
    resp = await client.get("/recommendations")
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    client.headers["Authorization"] = "Bearer not-a-jwt"
    resp = await client.get("/recommendations")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(client: AsyncClient):
    client.headers["Authorization"] = f"Bearer {create_access_token('reader-1', expires_minutes=-5)}"
    resp = await client.post("/interactions", json={"item_id": "dune", "event_kind": "view"})
    assert resp.status_code == 401


# ── Tracking ───────────────────────────────────────


@pytest.mark.asyncio
async def test_track_interaction(auth_client: AsyncClient, interaction_log):
    resp = await auth_client.post(
        "/interactions",
        json={
            "item_id": "dune",
            "event_kind": "borrow",
            "categories": ["Sci-Fi"],
            "author": "Herbert",
        },
    )
    assert resp.status_code == 201
    assert resp.json() == {"ok": True}
    assert resp.headers["X-RateLimit-Limit"] == "100"
    assert resp.headers["X-RateLimit-Remaining"] == "99"
    assert len(interaction_log) == 1


@pytest.mark.asyncio
async def test_track_unknown_kind(auth_client: AsyncClient):
    resp = await auth_client.post("/interactions", json={"item_id": "dune", "event_kind": "like"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_track_blank_item(auth_client: AsyncClient, interaction_log):
    resp = await auth_client.post("/interactions", json={"item_id": "   ", "event_kind": "view"})
    assert resp.status_code == 400
    assert len(interaction_log) == 0


@pytest.mark.asyncio
async def test_interaction_summary(auth_client: AsyncClient):
    for kind in ("view", "view", "bookmark"):
        await auth_client.post("/interactions", json={"item_id": "emma", "event_kind": kind})

    resp = await auth_client.get("/interactions/summary?days=7")
    assert resp.status_code == 200
    data = resp.json()
    assert data["user_id"] == "reader-1"
    assert data["days"] == 7
    assert data["counts"] == {"view": 2, "borrow": 0, "bookmark": 1}


@pytest.mark.asyncio
async def test_summary_days_out_of_range(auth_client: AsyncClient):
    resp = await auth_client.get("/interactions/summary?days=0")
    assert resp.status_code == 422


# ── Recommendations ────────────────────────────────


@pytest.mark.asyncio
async def test_cold_start_uses_popularity(auth_client: AsyncClient, interaction_log, make_event):
    await _seed(
        interaction_log,
        make_event,
        ("reader-2", "emma", EventKind.VIEW, {"categories": ["Classics"]}),
        ("reader-3", "emma", EventKind.BORROW, {"categories": ["Classics"]}),
    )
    resp = await auth_client.get("/recommendations")
    assert resp.status_code == 200
    data = resp.json()
    assert data["profile"] is None
    assert [r["item_id"] for r in data["recommendations"]] == ["emma"]
    assert "popularity" in data["recommendations"][0]["source_algorithms"]
    assert data["recommendations"][0]["primary_category"] == "Classics"


@pytest.mark.asyncio
async def test_empty_catalog_and_log(auth_client: AsyncClient):
    resp = await auth_client.get("/recommendations")
    assert resp.status_code == 200
    assert resp.json() == {"recommendations": [], "profile": None}


@pytest.mark.asyncio
async def test_personalized_recommendations(auth_client: AsyncClient, interaction_log, make_event):
    sci_fi = {"categories": ["Sci-Fi"]}
    await _seed(
        interaction_log,
        make_event,
        ("reader-2", "dune", EventKind.BORROW, sci_fi),
        ("reader-2", "hyperion", EventKind.BORROW, sci_fi),
    )
    await auth_client.post(
        "/interactions",
        json={"item_id": "dune", "event_kind": "borrow", "categories": ["Sci-Fi"], "author": "Herbert"},
    )

    resp = await auth_client.get("/recommendations?limit=3&exclude=emma")
    assert resp.status_code == 200
    data = resp.json()
    ids = [r["item_id"] for r in data["recommendations"]]
    assert "hyperion" in ids
    assert "emma" not in ids
    assert len(ids) <= 3
    assert data["profile"]["total_interactions"] == 1
    assert data["profile"]["top_categories"] == ["Sci-Fi"]

    hyperion = next(r for r in data["recommendations"] if r["item_id"] == "hyperion")
    assert "collaborative" in hyperion["source_algorithms"]
    assert "content" in hyperion["source_algorithms"]


@pytest.mark.asyncio
async def test_book_detail_context_excludes_current_book(
    auth_client: AsyncClient, interaction_log, make_event
):
    await _seed(interaction_log, make_event, ("reader-1", "dune", EventKind.VIEW, {"categories": ["Sci-Fi"]}))
    resp = await auth_client.get("/recommendations?context=book-detail&book_id=emma")
    assert resp.status_code == 200
    ids = [r["item_id"] for r in resp.json()["recommendations"]]
    assert "emma" not in ids
    assert "persuasion" in ids


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["limit=0", "limit=21", "context=sidebar"])
async def test_invalid_arguments(auth_client: AsyncClient, query: str):
    resp = await auth_client.get(f"/recommendations?{query}")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_recommendations_rate_limited(auth_client: AsyncClient):
    # Fixture limit: 5 requests per 60s.
    for expected_remaining in (4, 3, 2, 1, 0):
        resp = await auth_client.get("/recommendations")
        assert resp.status_code == 200
        assert resp.headers["X-RateLimit-Remaining"] == str(expected_remaining)

    resp = await auth_client.get("/recommendations")
    assert resp.status_code == 429
    assert int(resp.headers["Retry-After"]) >= 1
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.json()["retry_after"] == int(resp.headers["Retry-After"])


@pytest.mark.asyncio
async def test_rate_limits_are_per_user(auth_client: AsyncClient):
    for _ in range(5):
        await auth_client.get("/recommendations")
    assert (await auth_client.get("/recommendations")).status_code == 429

    auth_client.headers["Authorization"] = f"Bearer {create_access_token('reader-2')}"
    assert (await auth_client.get("/recommendations")).status_code == 200


@pytest.mark.asyncio
async def test_tracking_not_limited_by_recommendation_budget(auth_client: AsyncClient):
    for _ in range(6):
        await auth_client.get("/recommendations")
    resp = await auth_client.post("/interactions", json={"item_id": "dune", "event_kind": "view"})
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_invalid_requests_do_not_spend_budget(auth_client: AsyncClient):
    for query in ("limit=0", "limit=0", "limit=21", "context=sidebar", "context=sidebar"):
        assert (await auth_client.get(f"/recommendations?{query}")).status_code == 422

    resp = await auth_client.get("/recommendations?limit=5")
    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Remaining"] == "4"


@pytest.mark.asyncio
async def test_rate_limited_body(auth_client: AsyncClient):
    for _ in range(5):
        await auth_client.get("/recommendations")
    resp = await auth_client.get("/recommendations")
    assert resp.status_code == 429
    assert resp.json() == {"detail": "Rate limit exceeded", "retry_after": int(resp.headers["Retry-After"])}


@pytest.mark.asyncio
async def test_recommendations_carry_reasons(auth_client: AsyncClient):
    resp = await auth_client.get("/recommendations?context=book-detail&book_id=emma")
    assert resp.status_code == 200
    data = resp.json()
    assert data["profile"] is None
    persuasion = next(r for r in data["recommendations"] if r["item_id"] == "persuasion")
    assert persuasion["reason"] == "Also by Austen"
    assert persuasion["source_algorithms"] == ["content"]
