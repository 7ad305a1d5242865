"""
Recommendation engine facade.

Wires the repository to the individual rankers and exposes the public API.
Smart recommendations fan the three primary sources out onto a worker pool,
bound each branch by a timeout, and merge the survivors single-threaded.

This module lives inside recommendation_service/ so it can be reused by the
Flask layer, batch jobs or debug tooling without a web dependency.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait, FIRST_EXCEPTION
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..exceptions import RepositoryError, RepositoryUnavailable, RequestCancelled
from ..models import (
    POSITIVE_KINDS,
    PROFILE_KINDS,
    CandidateItem,
    InteractionEvent,
    PreferenceProfile,
    RankingRequest,
    ScoredItem,
    TrendingWindow,
    as_utc,
)
from ..repository import GuardedRepository, InteractionRepository
from .collaborative import CollaborativeRanker, NeighborFinder
from .merger import RankedSource, RankingMerger
from .personalized import PersonalizedRanker
from .popularity import FallbackRanker, TrendingRanker
from .profile import PreferenceProfileBuilder
from .similar import SimilarItemsRanker

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Branch outcomes
# ---------------------------------------------------------------------------


class OutcomeStatus(Enum):
    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class SourceOutcome:
    """Result of one primary source branch.

    Degraded states are values, not exceptions: a failed or timed-out branch
    simply contributes no items to the merge.
    """

    name: str
    status: OutcomeStatus
    items: List[ScoredItem] = field(default_factory=list)
    error: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def is_usable(self) -> bool:
        return self.status is OutcomeStatus.OK

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status.value,
            "count": len(self.items),
            "error": self.error,
            "elapsed_ms": round(self.elapsed_ms, 1),
        }


@dataclass(slots=True)
class SmartRecommendationResult:
    """Merged recommendations plus per-source diagnostics."""

    items: List[ScoredItem]
    outcomes: Dict[str, SourceOutcome]
    used_fallback: bool
    generated_at: datetime

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "sources": {name: outcome.to_dict() for name, outcome in self.outcomes.items()},
            "used_fallback": self.used_fallback,
            "generated_at": self.generated_at.isoformat(),
        }


# (name, priority) of the primary sources, in merge order.
PRIMARY_SOURCES = (
    (PersonalizedRanker.name, 1),
    (CollaborativeRanker.name, 2),
    (TrendingRanker.name, 3),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class RecommendationEngine:
    """Public entry point for every recommendation flavour."""

    def __init__(
        self,
        repository: InteractionRepository,
        clock: Optional[Clock] = None,
        candidate_limit: int = 100,
        history_limit: int = 100,
        neighbor_limit: int = 50,
        neighbor_interaction_limit: int = 100,
        branch_timeout: float = 2.0,
        max_concurrent_queries: int = 4,
        trending_window: TrendingWindow = TrendingWindow.WEEK,
        max_workers: int = 8,
    ):
        self.repository = repository
        self.clock = clock or utc_now
        self.candidate_limit = candidate_limit
        self.history_limit = history_limit
        self.neighbor_interaction_limit = neighbor_interaction_limit
        self.branch_timeout = branch_timeout
        self.max_concurrent_queries = max_concurrent_queries
        self.trending_window = trending_window

        self.profile_builder = PreferenceProfileBuilder(history_limit=history_limit)
        self.personalized_ranker = PersonalizedRanker()
        self.neighbor_finder = NeighborFinder(max_neighbors=neighbor_limit)
        self.collaborative_ranker = CollaborativeRanker()
        self.fallback_ranker = FallbackRanker()
        self.trending_ranker = TrendingRanker(self.fallback_ranker)
        self.similar_ranker = SimilarItemsRanker()
        self.merger = RankingMerger(fallback=self.fallback_ranker)

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="reco-branch")

    # Lifecycle ---------------------------------------------------------------

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "RecommendationEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def _guard(self, cancel_event: Optional[threading.Event] = None) -> GuardedRepository:
        return GuardedRepository(self.repository, self.max_concurrent_queries, cancel_event)

    # Public API --------------------------------------------------------------

    def build_preference_profile(self, viewer_id: str) -> PreferenceProfile:
        """Viewer's preference profile; an empty profile when history is unavailable."""
        repo = self._guard()
        try:
            return self._build_profile(repo, viewer_id)
        except RepositoryError as exc:
            logger.warning("Profile for %s unavailable, using empty profile: %s", viewer_id, exc)
            return PreferenceProfile()

    def get_personalized_recommendations(
        self, viewer_id: str, limit: int = 20, exclude_ids: Iterable[str] = ()
    ) -> List[ScoredItem]:
        """Profile-scored items; popularity order if the candidate store fails.

        Raises:
            RepositoryUnavailable: when the popularity fallback also fails.
        """
        repo = self._guard()
        try:
            return self._personalized(repo, viewer_id, limit, frozenset(exclude_ids), self._now())
        except RepositoryError as exc:
            logger.warning("Personalized ranking failed for %s, falling back: %s", viewer_id, exc)
        return self._popular(repo, limit)

    def get_collaborative_recommendations(
        self, viewer_id: str, limit: int = 20, exclude_ids: Iterable[str] = ()
    ) -> List[ScoredItem]:
        """Items endorsed by taste neighbors; empty when there are none or the store fails."""
        try:
            return self._collaborative(self._guard(), viewer_id, limit, frozenset(exclude_ids))
        except RepositoryError as exc:
            logger.warning("Collaborative ranking failed for %s: %s", viewer_id, exc)
            return []

    def get_trending_items(
        self, window: TrendingWindow = TrendingWindow.WEEK, limit: int = 20
    ) -> List[ScoredItem]:
        try:
            return self._trending(self._guard(), window, limit, frozenset(), self._now())
        except RepositoryError as exc:
            logger.warning("Trending ranking failed for window %s: %s", window.value, exc)
            return []

    def get_similar_items(
        self, item_id: str, limit: int = 10, exclude_ids: Iterable[str] = ()
    ) -> List[ScoredItem]:
        """Items similar to ``item_id``; empty for an unknown anchor."""
        repo = self._guard()
        try:
            anchors = repo.get_items([item_id])
            if not anchors:
                logger.info("Similar items: anchor %s not found", item_id)
                return []
            excluded = set(exclude_ids) | {item_id}
            candidates = repo.get_candidate_items(excluded, self.candidate_limit)
        except RepositoryError as exc:
            logger.warning("Similar items failed for %s: %s", item_id, exc)
            return []
        return self.similar_ranker.rank(anchors[0], candidates, exclude_ids=excluded, limit=limit)

    def get_new_user_recommendations(self, limit: int = 20) -> List[ScoredItem]:
        """Popularity list shown to users with no history at all.

        Raises:
            RepositoryUnavailable: when the store cannot be read.
        """
        return self._popular(self._guard(), limit)

    def get_smart_recommendations(
        self,
        viewer_id: str,
        limit: int = 20,
        exclude_ids: Iterable[str] = (),
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ScoredItem]:
        """Merged personalized + collaborative + trending list.

        Raises:
            RepositoryUnavailable: when every source is empty and the fallback
                store read fails as well.
            RequestCancelled: when ``cancel_event`` is set before completion.
        """
        request = RankingRequest(viewer_id=viewer_id, limit=limit, exclude_ids=frozenset(exclude_ids))
        return self.recommend(request, cancel_event=cancel_event).items

    def recommend(
        self, request: RankingRequest, cancel_event: Optional[threading.Event] = None
    ) -> SmartRecommendationResult:
        """Run the three primary sources concurrently and merge them."""
        cancel_event = cancel_event or threading.Event()
        now = self._now()
        repo = self._guard(cancel_event)

        branches: Dict[str, Callable[[], List[ScoredItem]]] = {
            PersonalizedRanker.name: lambda: self._personalized(
                repo, request.viewer_id, request.limit, request.exclude_ids, now, require_signal=True
            ),
            CollaborativeRanker.name: lambda: self._collaborative(
                repo, request.viewer_id, request.limit, request.exclude_ids
            ),
            TrendingRanker.name: lambda: self._trending(
                repo, self.trending_window, request.limit, request.exclude_ids, now, all_time_fallback=False
            ),
        }

        started = time.monotonic()
        futures = {name: self._executor.submit(fn) for name, fn in branches.items()}
        self._join(list(futures.values()), cancel_event, started + self.branch_timeout)
        elapsed_ms = (time.monotonic() - started) * 1000

        if cancel_event.is_set():
            for future in futures.values():
                future.cancel()
            repo.close()
            raise RequestCancelled("get_smart_recommendations")

        outcomes = {
            name: self._outcome(name, future, request.viewer_id, elapsed_ms)
            for name, future in futures.items()
        }
        # Branches that outlived their timeout stop at their next store call.
        repo.close()

        sources = [
            RankedSource(name=name, items=outcomes[name].items, priority=priority)
            for name, priority in PRIMARY_SOURCES
        ]
        merged = self.merger.merge(
            sources,
            request.limit,
            fallback_candidates=lambda: self._fallback_candidates(request.limit, cancel_event),
        )

        logger.info(
            "Smart recommendations for %s: %d items (fallback=%s, sources=%s)",
            request.viewer_id,
            len(merged.items),
            merged.used_fallback,
            {name: outcome.status.value for name, outcome in outcomes.items()},
        )
        return SmartRecommendationResult(
            items=merged.items,
            outcomes=outcomes,
            used_fallback=merged.used_fallback,
            generated_at=now,
        )

    # Branches ----------------------------------------------------------------

    def _viewer_history(self, repo: GuardedRepository, viewer_id: str) -> List[InteractionEvent]:
        return repo.get_interactions(viewer_id, PROFILE_KINDS, self.history_limit)

    def _build_profile(
        self,
        repo: GuardedRepository,
        viewer_id: str,
        history: Optional[Sequence[InteractionEvent]] = None,
    ) -> PreferenceProfile:
        if history is None:
            history = self._viewer_history(repo, viewer_id)
        item_ids = _unique(e.item_id for e in history if e.item_id)
        items = repo.get_items(item_ids) if item_ids else []
        return self.profile_builder.build(history, {item.id: item for item in items})

    def _personalized(
        self,
        repo: GuardedRepository,
        viewer_id: str,
        limit: int,
        exclude_ids: frozenset,
        now: datetime,
        require_signal: bool = False,
    ) -> List[ScoredItem]:
        try:
            history = self._viewer_history(repo, viewer_id)
            profile = self._build_profile(repo, viewer_id, history)
        except RepositoryError as exc:
            logger.warning("History for %s unavailable, ranking without profile: %s", viewer_id, exc)
            history, profile = [], PreferenceProfile()

        if require_signal and profile.is_empty:
            # No taste signal: leave cold start to the cross-source fallback.
            return []

        seen = {e.item_id for e in history if e.is_positive}
        excluded = set(exclude_ids) | seen
        candidates = repo.get_candidate_items(excluded, self.candidate_limit)
        return self.personalized_ranker.rank(
            profile, candidates, viewer_id, now, exclude_ids=excluded, limit=limit
        )

    def _collaborative(
        self,
        repo: GuardedRepository,
        viewer_id: str,
        limit: int,
        exclude_ids: frozenset,
    ) -> List[ScoredItem]:
        endorsed = repo.get_interactions(viewer_id, POSITIVE_KINDS, self.history_limit)
        my_items = _unique(e.item_id for e in endorsed)
        if not my_items:
            logger.debug("Collaborative: %s has no positive interactions", viewer_id)
            return []

        interactors = repo.get_positive_interactors(my_items, viewer_id, self.neighbor_finder.max_neighbors)
        neighbors = self.neighbor_finder.select(viewer_id, interactors)
        if not neighbors:
            logger.debug("Collaborative: no taste neighbors for %s", viewer_id)
            return []

        neighbor_events = repo.get_interactions_for_users(
            neighbors, POSITIVE_KINDS, my_items, self.neighbor_interaction_limit
        )
        item_ids = _unique(e.item_id for e in neighbor_events)
        items = repo.get_items(item_ids) if item_ids else []
        return self.collaborative_ranker.rank(
            viewer_id,
            neighbors,
            neighbor_events,
            {item.id: item for item in items},
            seen_item_ids=my_items,
            exclude_ids=exclude_ids,
            limit=limit,
        )

    def _trending(
        self,
        repo: GuardedRepository,
        window: TrendingWindow,
        limit: int,
        exclude_ids: frozenset,
        now: datetime,
        all_time_fallback: bool = True,
    ) -> List[ScoredItem]:
        events = repo.get_engagement_in_window(window.since(now), POSITIVE_KINDS)
        item_ids = _unique(e.item_id for e in events if e.item_id)
        items = repo.get_items(item_ids) if item_ids else []
        ranked = self.trending_ranker.rank(
            events, {item.id: item for item in items}, exclude_ids=exclude_ids, limit=limit
        )
        if ranked or not all_time_fallback:
            return ranked

        logger.debug("Trending window %s empty; using all-time popularity", window.value)
        all_time = repo.get_all_time_popularity(self.candidate_limit)
        return self.trending_ranker.rank_all_time(all_time, exclude_ids=exclude_ids, limit=limit)

    # Helpers -----------------------------------------------------------------

    def _popular(self, repo: GuardedRepository, limit: int) -> List[ScoredItem]:
        try:
            candidates = repo.get_all_time_popularity(limit)
        except RepositoryError as exc:
            raise RepositoryUnavailable(str(exc), {"operation": exc.operation}) from exc
        return self.fallback_ranker.rank(candidates, limit=limit)

    def _fallback_candidates(self, limit: int, cancel_event: threading.Event) -> List[CandidateItem]:
        try:
            return self._guard(cancel_event).get_all_time_popularity(limit)
        except RepositoryError as exc:
            logger.error("Popularity fallback failed: %s", exc)
            raise RepositoryUnavailable(str(exc), {"operation": exc.operation}) from exc

    def _join(self, futures: List[Future], cancel_event: threading.Event, deadline: float) -> None:
        """Wait for ``futures`` until done, the deadline passes, or the caller cancels."""
        pending = set(futures)
        while pending and not cancel_event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            _, pending = wait(pending, timeout=min(remaining, 0.05), return_when=FIRST_EXCEPTION)

    def _outcome(self, name: str, future: Future, viewer_id: str, elapsed_ms: float) -> SourceOutcome:
        if not future.done():
            future.cancel()
            logger.warning("Source %s timed out after %.1fs for %s", name, self.branch_timeout, viewer_id)
            return SourceOutcome(name, OutcomeStatus.TIMED_OUT, error="timeout", elapsed_ms=elapsed_ms)

        if future.cancelled():
            return SourceOutcome(name, OutcomeStatus.CANCELLED, error="cancelled", elapsed_ms=elapsed_ms)

        exc = future.exception()
        if isinstance(exc, RequestCancelled):
            return SourceOutcome(name, OutcomeStatus.CANCELLED, error=str(exc), elapsed_ms=elapsed_ms)
        if isinstance(exc, RepositoryError):
            logger.warning("Source %s failed for %s: %s", name, viewer_id, exc)
            return SourceOutcome(name, OutcomeStatus.FAILED, error=str(exc), elapsed_ms=elapsed_ms)
        if exc is not None:
            logger.error("Source %s raised unexpectedly for %s", name, viewer_id, exc_info=exc)
            return SourceOutcome(name, OutcomeStatus.FAILED, error=repr(exc), elapsed_ms=elapsed_ms)

        items = future.result()
        status = OutcomeStatus.OK if items else OutcomeStatus.EMPTY
        return SourceOutcome(name, status, items=items, elapsed_ms=elapsed_ms)


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    """Distinct non-empty values in first-seen order."""
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered
