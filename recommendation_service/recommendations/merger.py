"""
Priority-dedup merging of ranked source lists.

Sources are walked in priority order and each contributes position-decayed
scores. The first source to mention an item wins: later mentions are dropped,
never summed, so an item's score always reads as "how strongly did the
highest-priority source that noticed it rank it".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import CandidateItem, ScoredItem, score_order_key
from .popularity import FallbackRanker

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SourceDecay:
    """Linear position decay: ``base - step * rank``, clamped at zero."""

    base: float
    step: float

    def score(self, rank: int) -> float:
        return max(0.0, self.base - self.step * rank)


DEFAULT_DECAYS: Dict[str, SourceDecay] = {
    "personalized": SourceDecay(base=100.0, step=3.0),
    "collaborative": SourceDecay(base=70.0, step=2.0),
    "trending": SourceDecay(base=40.0, step=1.0),
}


@dataclass(frozen=True, slots=True)
class RankedSource:
    """One ranked input to the merger."""

    name: str
    items: Sequence[ScoredItem]
    priority: int


@dataclass(slots=True)
class MergeResult:
    """Merged output plus whether the popularity fallback produced it."""

    items: List[ScoredItem] = field(default_factory=list)
    used_fallback: bool = False
    contributions: Dict[str, int] = field(default_factory=dict)


class RankingMerger:
    """Combines ranked sources into one deduplicated list of at most ``limit`` items."""

    def __init__(
        self,
        decays: Optional[Mapping[str, SourceDecay]] = None,
        fallback: Optional[FallbackRanker] = None,
    ):
        self.decays = dict(decays or DEFAULT_DECAYS)
        self.fallback = fallback or FallbackRanker()

    def merge(
        self,
        sources: Sequence[RankedSource],
        limit: int,
        fallback_candidates: Optional[Callable[[], Sequence[CandidateItem]]] = None,
    ) -> MergeResult:
        """Merge ``sources`` and return the top ``limit`` items.

        ``fallback_candidates`` is only called when no source contributed an
        item; its error, if any, propagates to the caller.

        A source's rank counter advances only for items it actually inserts,
        so an item already claimed by a higher-priority source does not push
        the rest of the list down.
        """
        merged: Dict[str, Tuple[float, ScoredItem]] = {}
        contributions: Dict[str, int] = {}

        # sorted() is stable, so equal priorities keep their given order.
        for source in sorted(sources, key=lambda s: s.priority):
            decay = self._decay_for(source.name)
            inserted = 0
            for entry in source.items:
                if entry.item.id in merged:
                    continue
                merged[entry.item.id] = (decay.score(inserted), entry)
                inserted += 1
            contributions[source.name] = inserted

        if not merged:
            return self._fallback(limit, fallback_candidates, contributions)

        ordered = sorted(merged.values(), key=lambda pair: score_order_key(pair[0], pair[1].item))
        items = [
            ScoredItem(
                item=entry.item,
                score=score,
                rank=position,
                source=entry.source,
                reasons=entry.reasons,
            )
            for position, (score, entry) in enumerate(ordered[: max(0, limit)])
        ]
        return MergeResult(items=items, used_fallback=False, contributions=contributions)

    def _fallback(
        self,
        limit: int,
        fallback_candidates: Optional[Callable[[], Sequence[CandidateItem]]],
        contributions: Dict[str, int],
    ) -> MergeResult:
        logger.info("All recommendation sources empty; using popularity fallback")
        candidates = fallback_candidates() if fallback_candidates is not None else []
        return MergeResult(
            items=self.fallback.rank(candidates, limit=limit),
            used_fallback=True,
            contributions=contributions,
        )

    def _decay_for(self, name: str) -> SourceDecay:
        try:
            return self.decays[name]
        except KeyError:
            raise ValueError(f"No position decay configured for source '{name}'") from None
