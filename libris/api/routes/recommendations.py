"""Recommendation routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from libris.api.dependencies import get_rate_limiter, get_recommender
from libris.api.middleware.auth import get_current_user
from libris.api.schemas import (
    ErrorResponse,
    ProfileSnapshot,
    RecommendationItem,
    RecommendationsResponse,
)
from libris.config import settings
from libris.domain.entities import Context, RateLimitDecision, RecommendationRequest
from libris.domain.errors import InvalidArgument
from libris.ports.rate_limiter import RateLimiterPort
from libris.ports.recommender import RecommenderPort

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Recommendations"])

RECOMMENDATIONS_ACTION = "recommendations"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": decision.reset_at.isoformat(),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after)
    return headers


def _parse_context(raw: str) -> Context:
    try:
        return Context(raw)
    except ValueError as exc:
        raise InvalidArgument(f"context must be one of {[c.value for c in Context]}") from exc


@router.get(
    "/recommendations",
    response_model=RecommendationsResponse,
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse},
    },
)
async def get_recommendations(
    response: Response,
    limit: int = Query(
        settings.default_limit,
        ge=1,
        le=settings.max_limit,
        description=f"Number of recommendations (1-{settings.max_limit})",
    ),
    exclude: Optional[list[str]] = Query(None, description="Book ids to leave out"),
    context: str = Query(Context.BROWSE.value, description="browse | book-detail"),
    book_id: Optional[str] = Query(None, description="Book currently being viewed"),
    user_id: str = Depends(get_current_user),
    limiter: RateLimiterPort = Depends(get_rate_limiter),
    recommender: RecommenderPort = Depends(get_recommender),
) -> RecommendationsResponse:
    """Get personalized book suggestions for the current user."""
    # Validate before counting the request against the rate limit.
    request = RecommendationRequest(
        user_id=user_id,
        limit=limit,
        exclude_book_ids=exclude or [],
        context=_parse_context(context),
        book_id=book_id,
    )
    decision = limiter.enforce(user_id, RECOMMENDATIONS_ACTION)
    response.headers.update(rate_limit_headers(decision))

    result = await recommender.recommend(request)

    items = [
        RecommendationItem(
            item_id=rec.item_id,
            score=round(rec.score, 4),
            source_algorithms=[source.value for source in rec.sources],
            primary_category=rec.metadata.primary_category,
            reason=rec.reason,
        )
        for rec in result.recommendations
    ]
    profile = ProfileSnapshot(**result.profile) if result.profile is not None else None
    return RecommendationsResponse(recommendations=items, profile=profile)
