"""Domain entities for the recommendation engine."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    VIEW = "view"
    BORROW = "borrow"
    BOOKMARK = "bookmark"


class Context(str, Enum):
    BROWSE = "browse"
    BOOK_DETAIL = "book-detail"


class Strategy(str, Enum):
    """Candidate sources, in blending order."""

    COLLABORATIVE = "collaborative"
    CONTENT = "content"
    POPULARITY = "popularity"
    ENGAGEMENT = "engagement"


ATTRIBUTE_GROUPS = ("category", "tag", "author", "format", "publisher")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval `[start, end]` of event timestamps."""

    start: datetime
    end: datetime

    @classmethod
    def trailing(cls, days: float, now: Optional[datetime] = None) -> "TimeWindow":
        end = now or utcnow()
        return cls(start=end - timedelta(days=days), end=end)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class ItemMetadata:
    """Attribute snapshot of a catalog item at the time it was seen."""

    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    author: Optional[str] = None
    format: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else "Uncategorized"

    def attributes(self) -> dict[str, tuple[str, ...]]:
        """Attribute values grouped the same way as a profile."""
        return {
            "category": self.categories,
            "tag": self.tags,
            "author": (self.author,) if self.author else (),
            "format": (self.format,) if self.format else (),
            "publisher": (self.publisher,) if self.publisher else (),
        }

    def merged_with(self, other: "ItemMetadata") -> "ItemMetadata":
        """Fill empty fields from `other`; fields already set win."""
        return ItemMetadata(
            categories=self.categories or other.categories,
            tags=self.tags or other.tags,
            author=self.author or other.author,
            format=self.format or other.format,
            publisher=self.publisher or other.publisher,
            year=self.year if self.year is not None else other.year,
        )


@dataclass(frozen=True)
class InteractionEvent:
    """One user acting on one catalog item. Never mutated once recorded."""

    user_id: str
    item_id: str
    kind: EventKind
    timestamp: datetime = field(default_factory=utcnow)
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    author: Optional[str] = None
    format: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None

    @property
    def metadata(self) -> ItemMetadata:
        return ItemMetadata(
            categories=self.categories,
            tags=self.tags,
            author=self.author,
            format=self.format,
            publisher=self.publisher,
            year=self.year,
        )


@dataclass(frozen=True)
class CatalogItem:
    item_id: str
    title: str
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    author: Optional[str] = None
    format: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    available: bool = True

    @property
    def metadata(self) -> ItemMetadata:
        return ItemMetadata(
            categories=self.categories,
            tags=self.tags,
            author=self.author,
            format=self.format,
            publisher=self.publisher,
            year=self.year,
        )


@dataclass
class UserProfile:
    """Per-user affinity summary, rebuilt on every request and never stored.

    `affinities` maps an attribute group (see ATTRIBUTE_GROUPS) to
    {value: weight}; the weights of each non-empty group sum to 1.
    """

    user_id: str
    affinities: dict[str, dict[str, float]] = field(default_factory=dict)
    total_interactions: int = 0
    recent_interactions: int = 0
    interacted_items: frozenset[str] = frozenset()
    preferred_year: Optional[int] = None
    diversity: float = 0.5
    engagement_level: str = "low"

    @property
    def is_empty(self) -> bool:
        return self.total_interactions == 0

    def top(self, group: str, n: int) -> list[str]:
        weights = self.affinities.get(group, {})
        ranked = sorted(weights.items(), key=lambda kv: (-kv[1], kv[0]))
        return [value for value, _ in ranked[:n]]

    def snapshot(self) -> dict:
        """Caller-visible summary of the profile used for ranking."""
        return {
            "total_interactions": self.total_interactions,
            "recent_interactions": self.recent_interactions,
            "top_categories": self.top("category", 3),
            "top_tags": self.top("tag", 5),
            "top_authors": self.top("author", 3),
            "preferred_year": self.preferred_year,
            "diversity_score": round(self.diversity * 100),
            "engagement_level": self.engagement_level,
        }


@dataclass(frozen=True)
class Candidate:
    """An item proposed by a single strategy with its strategy-local score."""

    item_id: str
    source: Strategy
    raw_score: float
    metadata: ItemMetadata = ItemMetadata()


@dataclass(frozen=True)
class RecommendedItem:
    item_id: str
    score: float
    sources: tuple[Strategy, ...]
    metadata: ItemMetadata = ItemMetadata()
    reason: str = ""


@dataclass
class RecommendationRequest:
    user_id: str
    limit: int = 10
    exclude_book_ids: list[str] = field(default_factory=list)
    context: Context = Context.BROWSE
    book_id: Optional[str] = None


@dataclass
class RecommendationResult:
    recommendations: list[RecommendedItem] = field(default_factory=list)
    profile: Optional[dict] = None


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime
    retry_after: int = 0
