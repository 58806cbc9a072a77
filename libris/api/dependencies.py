"""Providers for the components owned by the application instance.

`create_app()` stores the log, catalog, rate limiter and recommender on
`app.state`; handlers reach them only through these dependencies, so tests and
deployments can swap implementations without touching the routes.
"""

from fastapi import Depends, Request

from libris.ports.interaction_log import InteractionLogPort
from libris.ports.rate_limiter import RateLimiterPort
from libris.ports.recommender import RecommenderPort
from libris.services.tracking import InteractionTracker


def get_interaction_log(request: Request) -> InteractionLogPort:
    return request.app.state.interaction_log


def get_rate_limiter(request: Request) -> RateLimiterPort:
    return request.app.state.rate_limiter


def get_recommender(request: Request) -> RecommenderPort:
    return request.app.state.recommender


def get_tracker(log: InteractionLogPort = Depends(get_interaction_log)) -> InteractionTracker:
    return InteractionTracker(log)
