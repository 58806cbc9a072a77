"""Interaction tracking routes."""

from fastapi import APIRouter, Depends, Query, Response, status

from libris.api.dependencies import get_rate_limiter, get_tracker
from libris.api.middleware.auth import get_current_user
from libris.api.routes.recommendations import rate_limit_headers
from libris.api.schemas import (
    ErrorResponse,
    InteractionCreateRequest,
    InteractionCreateResponse,
    InteractionSummaryResponse,
)
from libris.ports.rate_limiter import RateLimiterPort
from libris.services.tracking import InteractionTracker

router = APIRouter(prefix="/interactions", tags=["Interactions"])

TRACKING_ACTION = "tracking"


@router.post(
    "",
    response_model=InteractionCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse}},
)
async def track_interaction(
    data: InteractionCreateRequest,
    response: Response,
    user_id: str = Depends(get_current_user),
    limiter: RateLimiterPort = Depends(get_rate_limiter),
    tracker: InteractionTracker = Depends(get_tracker),
) -> InteractionCreateResponse:
    """Append one view, borrow or bookmark event to the interaction log."""
    decision = limiter.enforce(user_id, TRACKING_ACTION)
    response.headers.update(rate_limit_headers(decision))
    ok = await tracker.track(user_id, data)
    return InteractionCreateResponse(ok=ok)


@router.get("/summary", response_model=InteractionSummaryResponse)
async def interaction_summary(
    days: int = Query(90, ge=1, le=365),
    user_id: str = Depends(get_current_user),
    tracker: InteractionTracker = Depends(get_tracker),
) -> InteractionSummaryResponse:
    """Count the current user's events per kind."""
    counts = await tracker.summary(user_id, days=days)
    return InteractionSummaryResponse(user_id=user_id, days=days, counts=counts)
