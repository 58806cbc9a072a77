"""Recommender port: the engine behind GET /recommendations."""

from abc import ABC, abstractmethod

from libris.domain.entities import RecommendationRequest, RecommendationResult


class RecommenderPort(ABC):
    @abstractmethod
    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        """Rank up to `request.limit` books for `request.user_id`.

        Raises Unauthorized or InvalidArgument for a bad request. Read
        failures degrade the result instead of raising.
        """
        ...
