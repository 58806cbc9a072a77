"""FastAPI application factory — entry point for Libris."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from libris.adapters.catalog.memory import InMemoryCatalog
from libris.adapters.catalog.sql import SqlCatalog
from libris.adapters.interaction_log.memory import InMemoryInteractionLog
from libris.adapters.interaction_log.sql import SqlInteractionLog
from libris.adapters.ratelimit.memory import InMemoryRateLimiter
from libris.adapters.recommender.hybrid import HybridRecommenderAdapter
from libris.api.routes.interactions import router as interactions_router
from libris.api.routes.recommendations import rate_limit_headers
from libris.api.routes.recommendations import router as recommendations_router
from libris.api.schemas import ErrorResponse
from libris.config import LogBackend, settings
from libris.database import async_session_factory
from libris.domain.entities import RateLimitDecision
from libris.domain.errors import (
    InvalidArgument,
    RateLimited,
    Unauthorized,
    ValidationError,
)
from libris.ports.catalog import CatalogPort
from libris.ports.interaction_log import InteractionLogPort
from libris.ports.rate_limiter import RateLimiterPort
from libris.ports.recommender import RecommenderPort

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown events."""
    logger.info("Libris starting up...")
    logger.info("Interaction log backend: %s", settings.log_backend.value)
    logger.info("Strategy weights: %s", settings.strategy_weights)
    logger.info("Rate limits: %s", settings.rate_limits)
    yield
    logger.info("Libris shutting down...")


def _default_components() -> tuple[InteractionLogPort, CatalogPort]:
    if settings.log_backend is LogBackend.SQL:
        return SqlInteractionLog(async_session_factory), SqlCatalog(async_session_factory)
    return InMemoryInteractionLog(), InMemoryCatalog()


def _register_error_handlers(application: FastAPI) -> None:
    @application.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @application.exception_handler(RateLimited)
    async def rate_limited_handler(request: Request, exc: RateLimited) -> JSONResponse:
        headers = {"Retry-After": str(exc.retry_after), "X-RateLimit-Limit": str(exc.limit)}
        if exc.reset_at is not None:
            headers = rate_limit_headers(
                RateLimitDecision(
                    allowed=False,
                    limit=exc.limit,
                    remaining=0,
                    reset_at=exc.reset_at,
                    retry_after=exc.retry_after,
                )
            )
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=ErrorResponse(detail="Rate limit exceeded", retry_after=exc.retry_after).model_dump(),
            headers=headers,
        )

    @application.exception_handler(InvalidArgument)
    async def invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @application.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @application.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("[UNHANDLED] %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )


def create_app(
    interaction_log: Optional[InteractionLogPort] = None,
    catalog: Optional[CatalogPort] = None,
    rate_limiter: Optional[RateLimiterPort] = None,
    recommender: Optional[RecommenderPort] = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Every collaborator can be injected; anything omitted is built from
    settings. The rate limiter is owned by the returned app, so two apps never
    share counters.
    """
    application = FastAPI(
        title="Libris",
        description="Personalized recommendations for the library catalog",
        version="1.0.0",
        lifespan=lifespan,
    )

    # An empty in-memory log is falsy, so compare against None explicitly.
    if interaction_log is None or catalog is None:
        default_log, default_catalog = _default_components()
        if interaction_log is None:
            interaction_log = default_log
        if catalog is None:
            catalog = default_catalog
    if rate_limiter is None:
        rate_limiter = InMemoryRateLimiter(
            settings.rate_limits,
            purge_interval=settings.rate_limit_purge_interval,
        )
    if recommender is None:
        recommender = HybridRecommenderAdapter(interaction_log, catalog)

    application.state.interaction_log = interaction_log
    application.state.catalog = catalog
    application.state.rate_limiter = rate_limiter
    application.state.recommender = recommender

    # ── Middleware ──────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(application)

    # ── Routes ─────────────────────────────────────
    application.include_router(recommendations_router)
    application.include_router(interactions_router)

    # ── Health Check ───────────────────────────────
    @application.get("/health", tags=["System"])
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "libris"}

    return application


app = create_app()
