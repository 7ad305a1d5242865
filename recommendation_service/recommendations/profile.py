"""
Preference profile inference.

Turns a viewer's raw interaction history into a compact ``PreferenceProfile``.
This is a pure function over its inputs; fetching happens in the engine.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Tuple

from ..models import (
    PROFILE_KINDS,
    CandidateItem,
    InteractionEvent,
    InteractionKind,
    PreferenceProfile,
    PriceRange,
)

# How many times each kind contributes the item's price to the price samples.
_PRICE_SAMPLE_REPEATS = {
    InteractionKind.LIKE: 1,
    InteractionKind.BOOKMARK: 3,
}


class PreferenceProfileBuilder:
    """Builds weighted category / creator / price preferences from history."""

    def __init__(
        self,
        history_limit: int = 100,
        max_categories: int = 3,
        max_creators: int = 10,
        price_low_factor: float = 0.5,
        price_high_factor: float = 1.5,
    ):
        self.history_limit = max(0, history_limit)
        self.max_categories = max_categories
        self.max_creators = max_creators
        self.price_low_factor = price_low_factor
        self.price_high_factor = price_high_factor

    def build(
        self,
        events: Sequence[InteractionEvent],
        items_by_id: Mapping[str, CandidateItem],
    ) -> PreferenceProfile:
        """Build a profile from ``events`` and the items they reference.

        Only Like, Bookmark and Follow events count; the most recent
        ``history_limit`` of those are used. Like/Bookmark events whose item is
        missing from ``items_by_id`` are skipped.
        """
        recent = sorted(
            (e for e in events if e.kind in PROFILE_KINDS),
            key=lambda e: (-e.created_at.timestamp(), e.item_id or "", e.creator_id or ""),
        )[: self.history_limit]

        category_scores: Dict[str, float] = {}
        creator_scores: Dict[str, float] = {}
        prices: List[float] = []

        for event in recent:
            weight = event.weight
            if event.kind is InteractionKind.FOLLOW:
                creator_scores[event.creator_id] = creator_scores.get(event.creator_id, 0) + weight
                continue

            item = items_by_id.get(event.item_id)
            if item is None:
                continue

            if item.category:
                category_scores[item.category] = category_scores.get(item.category, 0) + weight
            creator_scores[item.creator_id] = creator_scores.get(item.creator_id, 0) + weight
            prices.extend([item.price] * _PRICE_SAMPLE_REPEATS[event.kind])

        return PreferenceProfile(
            favorite_categories=_top_keys(category_scores, self.max_categories),
            favorite_creators=_top_keys(creator_scores, self.max_creators),
            price_range=self.price_range(prices),
        )

    def price_range(self, prices: Sequence[float]) -> PriceRange:
        """Median-centred price window; unbounded when there are no samples."""
        if not prices:
            return PriceRange()
        ordered = sorted(prices)
        median = ordered[len(ordered) // 2]
        return PriceRange(
            min=max(0.0, median * self.price_low_factor),
            max=median * self.price_high_factor,
        )


def _top_keys(scores: Dict[str, float], limit: int) -> Tuple[str, ...]:
    """Keys by score descending, ties broken by key ascending."""
    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return tuple(key for key, _ in ordered[:limit])
