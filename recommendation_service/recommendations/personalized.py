"""
Profile-based personalized ranking.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from ..models import CandidateItem, PreferenceProfile, ScoredItem, assign_ranks

# (max age, bonus) brackets, checked in order.
RECENCY_BRACKETS: Tuple[Tuple[timedelta, float], ...] = (
    (timedelta(days=7), 15.0),
    (timedelta(days=30), 10.0),
    (timedelta(days=90), 5.0),
)


def popularity_bonus(item: CandidateItem, cap: float = 10.0, per_engagement: float = 0.5) -> float:
    return min(cap, item.engagement_count * per_engagement)


class PersonalizedRanker:
    """Scores candidates against a viewer's preference profile.

    An empty profile is not an error: the affinity terms simply contribute
    nothing and popularity, recency and activity decide the order.
    """

    name = "personalized"

    def __init__(
        self,
        category_base: float = 30.0,
        category_step: float = 5.0,
        creator_base: float = 50.0,
        creator_step: float = 2.0,
        price_bonus: float = 20.0,
        activity_cap: float = 5.0,
    ):
        self.category_base = category_base
        self.category_step = category_step
        self.creator_base = creator_base
        self.creator_step = creator_step
        self.price_bonus = price_bonus
        self.activity_cap = activity_cap

    def rank(
        self,
        profile: PreferenceProfile,
        candidates: Sequence[CandidateItem],
        viewer_id: str,
        now: datetime,
        exclude_ids: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[ScoredItem]:
        excluded = set(exclude_ids)
        scored = []
        for item in candidates:
            if item.id in excluded or item.creator_id == viewer_id:
                continue
            value, reasons = self.score(profile, item, now)
            scored.append((value, item, reasons))
        return assign_ranks(scored, source=self.name, limit=limit)

    def score(
        self, profile: PreferenceProfile, item: CandidateItem, now: datetime
    ) -> Tuple[float, Tuple[str, ...]]:
        """Return the summed score and the reasons that contributed to it."""
        value = 0.0
        reasons: List[str] = []

        if item.category in profile.favorite_categories:
            position = profile.favorite_categories.index(item.category)
            value += max(0.0, self.category_base - position * self.category_step)
            reasons.append("category_match")

        if item.creator_id in profile.favorite_creators:
            position = profile.favorite_creators.index(item.creator_id)
            value += max(0.0, self.creator_base - position * self.creator_step)
            reasons.append("creator_affinity")

        # An unbounded range carries no signal, so it earns no bonus.
        if not profile.price_range.is_unbounded and profile.price_range.contains(item.price):
            value += self.price_bonus
            reasons.append("price_match")

        value += popularity_bonus(item)

        recency = recency_bonus(item, now)
        if recency:
            value += recency
            reasons.append("recent")

        value += min(self.activity_cap, item.comment_count * 0.5)

        return value, tuple(reasons)


def recency_bonus(item: CandidateItem, now: datetime) -> float:
    age = now - item.created_at
    for max_age, bonus in RECENCY_BRACKETS:
        if age < max_age:
            return bonus
    return 0.0
