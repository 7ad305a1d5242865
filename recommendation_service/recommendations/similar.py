"""
"More like this" ranking anchored on an item instead of a viewer.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from ..models import CandidateItem, ScoredItem, assign_ranks
from .personalized import popularity_bonus


class SimilarItemsRanker:
    """Scores every candidate by creator, category and price closeness to an anchor."""

    name = "similar"

    def __init__(
        self,
        same_creator_bonus: float = 50.0,
        same_category_bonus: float = 30.0,
        price_brackets: Sequence[Tuple[float, float]] = ((0.3, 20.0), (0.5, 10.0)),
    ):
        self.same_creator_bonus = same_creator_bonus
        self.same_category_bonus = same_category_bonus
        self.price_brackets = tuple(price_brackets)

    def rank(
        self,
        anchor: CandidateItem,
        candidates: Sequence[CandidateItem],
        exclude_ids: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[ScoredItem]:
        excluded = set(exclude_ids)
        excluded.add(anchor.id)
        scored = []
        for item in candidates:
            if item.id in excluded:
                continue
            value, reasons = self.score(anchor, item)
            scored.append((value, item, reasons))
        return assign_ranks(scored, source=self.name, limit=limit)

    def score(self, anchor: CandidateItem, item: CandidateItem) -> Tuple[float, Tuple[str, ...]]:
        value = 0.0
        reasons: List[str] = []

        if item.creator_id == anchor.creator_id:
            value += self.same_creator_bonus
            reasons.append("same_creator")

        if item.category and item.category == anchor.category:
            value += self.same_category_bonus
            reasons.append("same_category")

        price_score = self.price_score(anchor.price, item.price)
        if price_score:
            value += price_score
            reasons.append("similar_price")

        value += popularity_bonus(item)
        return value, tuple(reasons)

    def price_score(self, anchor_price: float, price: float) -> float:
        """Bonus for the tightest bracket the relative price difference falls under."""
        # Relative difference is undefined for a free anchor.
        if anchor_price <= 0:
            return 0.0
        diff = abs(anchor_price - price) / anchor_price
        for threshold, bonus in self.price_brackets:
            if diff < threshold:
                return bonus
        return 0.0
