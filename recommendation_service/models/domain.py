"""
Domain data models for the recommendation engine.

These are the typed records every ranker consumes and produces. They are
immutable snapshots: the engine reads them but never mutates them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


class InteractionKind(Enum):
    """Closed set of interaction kinds recorded by the host application."""

    LIKE = "like"
    BOOKMARK = "bookmark"
    FOLLOW = "follow"
    VIEW = "view"

    @property
    def weight(self) -> int:
        """Preference weight of this kind (derived, never stored)."""
        return _KIND_WEIGHTS[self]

    @classmethod
    def is_valid(cls, kind: str) -> bool:
        """Check if a kind string is valid."""
        try:
            cls(kind)
            return True
        except ValueError:
            return False


_KIND_WEIGHTS = {
    InteractionKind.LIKE: 2,
    InteractionKind.BOOKMARK: 3,
    InteractionKind.FOLLOW: 5,
    InteractionKind.VIEW: 0,
}

# Kinds that count as a positive endorsement of an item.
POSITIVE_KINDS: Tuple[InteractionKind, ...] = (InteractionKind.LIKE, InteractionKind.BOOKMARK)

# Kinds that feed the preference profile.
PROFILE_KINDS: Tuple[InteractionKind, ...] = (
    InteractionKind.LIKE,
    InteractionKind.BOOKMARK,
    InteractionKind.FOLLOW,
)


class TrendingWindow(Enum):
    """Look-back windows supported by the trending ranker."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def delta(self) -> timedelta:
        return timedelta(days=_WINDOW_DAYS[self])

    def since(self, now: datetime) -> datetime:
        """Start of this window relative to ``now``."""
        return now - self.delta

    @classmethod
    def parse(cls, value: Optional[str], default: "TrendingWindow") -> "TrendingWindow":
        """Parse a window name, falling back to ``default`` on unknown input."""
        if not value:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


_WINDOW_DAYS = {
    TrendingWindow.DAY: 1,
    TrendingWindow.WEEK: 7,
    TrendingWindow.MONTH: 30,
}


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with the engine clock."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    """A single append-only interaction of a user with an item or creator.

    Follow events target a creator rather than an item, so they carry
    ``creator_id`` and may leave ``item_id`` empty.
    """

    user_id: str
    kind: InteractionKind
    created_at: datetime
    item_id: Optional[str] = None
    creator_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", as_utc(self.created_at))
        if self.kind is InteractionKind.FOLLOW:
            if not self.creator_id:
                raise ValueError("Follow events require creator_id")
        elif not self.item_id:
            raise ValueError(f"{self.kind.value} events require item_id")

    @property
    def weight(self) -> int:
        return self.kind.weight

    @property
    def is_positive(self) -> bool:
        return self.kind in POSITIVE_KINDS


@dataclass(frozen=True, slots=True)
class CandidateItem:
    """Read-only snapshot of an artwork as supplied by the store."""

    id: str
    creator_id: str
    category: str
    price: float
    created_at: datetime
    popularity_count: int = 0
    engagement_count: int = 0
    comment_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", as_utc(self.created_at))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "category": self.category,
            "price": self.price,
            "created_at": self.created_at.isoformat(),
            "popularity_count": self.popularity_count,
            "engagement_count": self.engagement_count,
            "comment_count": self.comment_count,
        }


@dataclass(frozen=True, slots=True)
class PriceRange:
    """Inclusive price window; the default means "no preference"."""

    min: float = 0.0
    max: float = math.inf

    @property
    def is_unbounded(self) -> bool:
        return self.min <= 0 and math.isinf(self.max)

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max

    def to_dict(self) -> Dict[str, Optional[float]]:
        # JSON has no infinity, so the open upper bound is emitted as null.
        return {"min": self.min, "max": None if math.isinf(self.max) else self.max}


@dataclass(frozen=True, slots=True)
class PreferenceProfile:
    """Compact, per-request summary of a viewer's affinities."""

    favorite_categories: Tuple[str, ...] = ()
    favorite_creators: Tuple[str, ...] = ()
    price_range: PriceRange = field(default_factory=PriceRange)

    @property
    def is_empty(self) -> bool:
        return (
            not self.favorite_categories
            and not self.favorite_creators
            and self.price_range.is_unbounded
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "favorite_categories": list(self.favorite_categories),
            "favorite_creators": list(self.favorite_creators),
            "price_range": self.price_range.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ScoredItem:
    """An item with the score and position a ranker assigned to it."""

    item: CandidateItem
    score: float
    rank: int
    source: Optional[str] = None
    reasons: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.score < 0:
            raise ValueError(f"score must be non-negative, got {self.score}")

    @property
    def item_id(self) -> str:
        return self.item.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item.to_dict(),
            "score": self.score,
            "rank": self.rank,
            "source": self.source,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True, slots=True)
class RankingRequest:
    """Input value object for a merged recommendation request."""

    viewer_id: str
    limit: int = 20
    exclude_ids: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError(f"limit must be non-negative, got {self.limit}")
        if not isinstance(self.exclude_ids, frozenset):
            object.__setattr__(self, "exclude_ids", frozenset(self.exclude_ids))


# ---------------------------------------------------------------------------
# Shared ordering helpers
# ---------------------------------------------------------------------------


def newest_first_key(item: CandidateItem) -> Tuple[float, str]:
    """Tie-break key: ``created_at`` descending, then ``id`` ascending."""
    return (-item.created_at.timestamp(), item.id)


def score_order_key(score: float, item: CandidateItem) -> Tuple[float, float, str]:
    """Score descending, then newest first, then id ascending."""
    return (-score, -item.created_at.timestamp(), item.id)


def assign_ranks(
    scored: Iterable[Tuple[float, CandidateItem, Tuple[str, ...]]],
    source: str,
    limit: Optional[int] = None,
) -> List[ScoredItem]:
    """Sort ``(score, item, reasons)`` triples and wrap them as ranked ``ScoredItem``s.

    Items are deduplicated by id (first occurrence wins) before sorting.
    """
    seen = set()
    unique: List[Tuple[float, CandidateItem, Tuple[str, ...]]] = []
    for entry in scored:
        if entry[1].id in seen:
            continue
        seen.add(entry[1].id)
        unique.append(entry)

    unique.sort(key=lambda entry: score_order_key(entry[0], entry[1]))
    if limit is not None:
        unique = unique[: max(0, limit)]

    return [
        ScoredItem(item=item, score=max(0.0, float(score)), rank=position, source=source, reasons=reasons)
        for position, (score, item, reasons) in enumerate(unique)
    ]
