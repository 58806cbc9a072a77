"""Merges per-strategy candidate lists into one ranked, diverse list."""

import math
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Optional

from libris.domain.entities import (
    Candidate,
    ItemMetadata,
    RecommendedItem,
    Strategy,
    UserProfile,
)


def normalize(candidates: Iterable[Candidate]) -> dict[str, float]:
    """Min-max scale raw scores to [0, 1].

    A single candidate, or a list where every score is equal, maps to 1.0.
    """
    best: dict[str, float] = {}
    for candidate in candidates:
        best[candidate.item_id] = max(candidate.raw_score, best.get(candidate.item_id, -math.inf))
    if not best:
        return {}
    low, high = min(best.values()), max(best.values())
    if high - low <= 0:
        return {item_id: 1.0 for item_id in best}
    return {item_id: (score - low) / (high - low) for item_id, score in best.items()}


def merge(
    normalized: Mapping[Strategy, Mapping[str, float]],
    weights: Mapping[str, float],
) -> dict[str, tuple[float, tuple[Strategy, ...]]]:
    """Weighted sum of each item's normalized scores across strategies.

    Each strategy counts at most once per item; items found by several
    strategies accumulate more weight.
    """
    merged: dict[str, tuple[float, tuple[Strategy, ...]]] = {}
    for strategy in Strategy:
        weight = weights.get(strategy.value, 0.0)
        for item_id, score in normalized.get(strategy, {}).items():
            total, sources = merged.get(item_id, (0.0, ()))
            merged[item_id] = (total + weight * score, sources + (strategy,))
    return merged


def _cap(share: float, limit: int, tighten: bool) -> int:
    cap = max(1, math.floor(share * limit))
    return max(1, cap - 1) if tighten else cap


def diversify(
    ranked: list[RecommendedItem],
    limit: int,
    cap_share: float,
    author_cap_share: float = 1.0,
    tighten: bool = False,
) -> list[RecommendedItem]:
    """Greedy category and author caps over an already sorted list.

    Items whose primary category already holds `cap_share` of the limit, or
    whose author already holds `author_cap_share` of it, are deferred and only
    used to fill the tail when nothing else is left. `tighten` lowers both
    caps by one (never below 1) for readers who already range widely. Items
    without an author are only capped by category.
    """
    category_cap = _cap(cap_share, limit, tighten)
    author_cap = _cap(author_cap_share, limit, tighten)
    selected: list[RecommendedItem] = []
    deferred: list[RecommendedItem] = []
    per_category: Counter = Counter()
    per_author: Counter = Counter()

    for item in ranked:
        if len(selected) >= limit:
            break
        category = item.metadata.primary_category
        author = item.metadata.author
        if per_category[category] < category_cap and (not author or per_author[author] < author_cap):
            selected.append(item)
            per_category[category] += 1
            if author:
                per_author[author] += 1
        else:
            deferred.append(item)

    for item in deferred:
        if len(selected) >= limit:
            break
        selected.append(item)
    return selected


def explain(
    item: RecommendedItem,
    profile: Optional[UserProfile] = None,
    reference: Optional[ItemMetadata] = None,
) -> str:
    """One short, human-readable reason for recommending `item`.

    Attribute matches against the viewed book come first, then matches
    against the profile, then the strongest contributing signal.
    """
    meta = item.metadata
    if reference is not None:
        if meta.author and meta.author == reference.author:
            return f"Also by {meta.author}"
        shared = [c for c in meta.categories if c in reference.categories]
        if shared:
            return f"Similar: {shared[0]}"

    if profile is not None and not profile.is_empty:
        top_categories = profile.top("category", 3)
        for category in meta.categories:
            if category in top_categories:
                if top_categories.index(category) == 0:
                    return f"You love {category}"
                return f"You like {category}"
        top_authors = profile.top("author", 3)
        if meta.author and meta.author in top_authors:
            if top_authors.index(meta.author) == 0:
                return f"By {meta.author} (your favorite)"
            return f"By {meta.author}"
        top_tags = profile.top("tag", 5)
        for tag in meta.tags:
            if tag in top_tags:
                return f"Interested in {tag}"

    if Strategy.COLLABORATIVE in item.sources:
        return "Readers like you also read this"
    if Strategy.ENGAGEMENT in item.sources:
        return "Trending now"
    if Strategy.POPULARITY in item.sources:
        return "Popular with readers"
    return "Recommended for you"


def blend(
    candidates: Mapping[Strategy, list[Candidate]],
    weights: Mapping[str, float],
    exclude: Iterable[str],
    limit: int,
    cap_share: float,
    author_cap_share: float = 1.0,
    tighten: bool = False,
) -> list[RecommendedItem]:
    excluded = set(exclude)
    normalized: dict[Strategy, dict[str, float]] = {}
    metadata: dict[str, ItemMetadata] = {}

    for strategy in Strategy:
        kept = [c for c in candidates.get(strategy, []) if c.item_id not in excluded]
        normalized[strategy] = normalize(kept)
        for candidate in kept:
            known = metadata.get(candidate.item_id, ItemMetadata())
            metadata[candidate.item_id] = known.merged_with(candidate.metadata)

    merged = merge(normalized, weights)
    ranked = sorted(
        (
            RecommendedItem(item_id=item_id, score=score, sources=sources, metadata=metadata[item_id])
            for item_id, (score, sources) in merged.items()
        ),
        key=lambda item: (-item.score, item.item_id),
    )
    return diversify(ranked, limit, cap_share, author_cap_share, tighten)
