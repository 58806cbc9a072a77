"""Pydantic request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from libris.domain.entities import EventKind


class InteractionCreateRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    event_kind: EventKind
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    author: Optional[str] = None
    format: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None


class InteractionCreateResponse(BaseModel):
    ok: bool


class InteractionSummaryResponse(BaseModel):
    user_id: str
    days: int
    counts: dict[str, int]


class RecommendationItem(BaseModel):
    item_id: str
    score: float
    source_algorithms: list[str]
    primary_category: Optional[str] = None
    reason: str = ""


class ProfileSnapshot(BaseModel):
    total_interactions: int
    recent_interactions: int
    top_categories: list[str]
    top_tags: list[str]
    top_authors: list[str]
    preferred_year: Optional[int] = None
    diversity_score: int
    engagement_level: str


class RecommendationsResponse(BaseModel):
    recommendations: list[RecommendationItem]
    profile: Optional[ProfileSnapshot] = None


class ErrorResponse(BaseModel):
    detail: str
    retry_after: Optional[int] = None
