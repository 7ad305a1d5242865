"""
Taste-neighbor collaborative ranking.

"Users who liked what you liked also liked..."
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..models import CandidateItem, InteractionEvent, ScoredItem, assign_ranks

logger = logging.getLogger(__name__)


class NeighborFinder:
    """Selects taste neighbors from the users who endorsed the viewer's items."""

    def __init__(self, max_neighbors: int = 50):
        self.max_neighbors = max_neighbors

    def select(self, viewer_id: str, interactors: Iterable[str]) -> List[str]:
        """Deduplicate ``interactors`` in first-seen order, drop the viewer, cap the count."""
        neighbors: List[str] = []
        seen: Set[str] = set()
        for user_id in interactors:
            if not user_id or user_id == viewer_id or user_id in seen:
                continue
            seen.add(user_id)
            neighbors.append(user_id)
            if len(neighbors) >= self.max_neighbors:
                break
        return neighbors


class CollaborativeRanker:
    """Ranks items by how many distinct taste neighbors endorsed them.

    Returns an empty list when there are no neighbors; falling back is the
    merger's job, not this ranker's.
    """

    name = "collaborative"

    def rank(
        self,
        viewer_id: str,
        neighbors: Sequence[str],
        neighbor_events: Sequence[InteractionEvent],
        items_by_id: Mapping[str, CandidateItem],
        seen_item_ids: Iterable[str] = (),
        exclude_ids: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[ScoredItem]:
        if not neighbors:
            return []

        neighbor_set = set(neighbors)
        skipped = set(seen_item_ids) | set(exclude_ids)
        endorsers: Dict[str, Set[str]] = {}

        for event in neighbor_events:
            if not event.is_positive or event.user_id not in neighbor_set:
                continue
            if event.item_id in skipped:
                continue
            endorsers.setdefault(event.item_id, set()).add(event.user_id)

        scored = []
        for item_id, users in endorsers.items():
            item = items_by_id.get(item_id)
            if item is None or item.creator_id == viewer_id:
                continue
            scored.append((float(len(users)), item, ("similar_users_liked",)))

        logger.debug(
            "Collaborative: %d neighbors endorsed %d candidate items", len(neighbor_set), len(scored)
        )
        return assign_ranks(scored, source=self.name, limit=limit)
