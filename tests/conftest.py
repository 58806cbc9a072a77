from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from libris.adapters.catalog.memory import InMemoryCatalog
from libris.adapters.interaction_log.memory import InMemoryInteractionLog
from libris.adapters.ratelimit.memory import InMemoryRateLimiter
from libris.api.middleware.auth import create_access_token
from libris.domain.entities import CatalogItem, EventKind, InteractionEvent
from libris.domain.models import Base
from libris.main import create_app

BASE = "http://test"

# Fixed "now" for unit tests that inject a clock.
NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_event():
    """Factory for InteractionEvents relative to a reference time."""

    def _make(
        user_id: str,
        item_id: str,
        kind: EventKind = EventKind.VIEW,
        days_ago: float = 1,
        at: datetime = NOW,
        **attrs,
    ) -> InteractionEvent:
        for key in ("categories", "tags"):
            if key in attrs:
                attrs[key] = tuple(attrs[key])
        return InteractionEvent(
            user_id=user_id,
            item_id=item_id,
            kind=kind,
            timestamp=at - timedelta(days=days_ago),
            **attrs,
        )

    return _make


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """A throwaway SQLite database with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ── Application ────────────────────────────────────


@pytest.fixture
def interaction_log() -> InMemoryInteractionLog:
    return InMemoryInteractionLog()


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return InMemoryCatalog(
        [
            CatalogItem("dune", "Dune", categories=("Sci-Fi",), tags=("desert",), author="Herbert"),
            CatalogItem("hyperion", "Hyperion", categories=("Sci-Fi",), author="Simmons"),
            CatalogItem("emma", "Emma", categories=("Classics",), author="Austen"),
            CatalogItem("persuasion", "Persuasion", categories=("Classics",), author="Austen"),
        ]
    )


@pytest.fixture
def rate_limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter({"recommendations": (5, 60.0), "tracking": (100, 60.0)})


@pytest.fixture
def app(interaction_log, catalog, rate_limiter):
    return create_app(interaction_log=interaction_log, catalog=catalog, rate_limiter=rate_limiter)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=BASE) as c:
        yield c


@pytest.fixture
async def auth_client(client: AsyncClient) -> AsyncClient:
    """Client carrying a bearer token for user `reader-1`."""
    client.headers["Authorization"] = f"Bearer {create_access_token('reader-1')}"
    return client
