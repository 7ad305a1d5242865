"""
Popularity-based rankers: recent trending and all-time fallback.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Mapping, Optional, Sequence

from ..models import CandidateItem, InteractionEvent, ScoredItem, assign_ranks


class FallbackRanker:
    """Pure popularity order, used when every primary source comes back empty."""

    name = "fallback"

    def rank(self, candidates: Sequence[CandidateItem], limit: Optional[int] = None) -> List[ScoredItem]:
        scored = [(float(item.engagement_count), item, ("popular",)) for item in candidates]
        return assign_ranks(scored, source=self.name, limit=limit)


class TrendingRanker:
    """Ranks items by the number of engagement events inside a time window.

    When the window holds no engaged item at all, the ranker returns the
    all-time popularity order instead. That internal fallback is independent
    of the window and separate from the cross-source ``FallbackRanker``.
    """

    name = "trending"

    def __init__(self, fallback: Optional[FallbackRanker] = None):
        self._all_time = fallback or FallbackRanker()

    def rank(
        self,
        window_events: Sequence[InteractionEvent],
        items_by_id: Mapping[str, CandidateItem],
        all_time_items: Sequence[CandidateItem] = (),
        exclude_ids: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[ScoredItem]:
        excluded = set(exclude_ids)
        counts = Counter(
            event.item_id
            for event in window_events
            if event.item_id in items_by_id and event.item_id not in excluded
        )

        if not counts:
            return self.rank_all_time(all_time_items, exclude_ids=excluded, limit=limit)

        scored = [
            (float(count), items_by_id[item_id], ("trending",))
            for item_id, count in counts.items()
        ]
        return assign_ranks(scored, source=self.name, limit=limit)

    def rank_all_time(
        self,
        all_time_items: Sequence[CandidateItem],
        exclude_ids: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[ScoredItem]:
        excluded = set(exclude_ids)
        ranked = self._all_time.rank([i for i in all_time_items if i.id not in excluded], limit=limit)
        return [
            ScoredItem(item=s.item, score=s.score, rank=s.rank, source=self.name, reasons=("popular",))
            for s in ranked
        ]
