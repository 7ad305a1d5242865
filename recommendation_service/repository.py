"""
Interaction repository interface and bundled adapters.

The engine never talks to a database directly. Hosts implement
``InteractionRepository`` against their own store; two adapters ship here:

- ``InMemoryInteractionRepository`` over an immutable snapshot
- ``JsonFileRepository`` over ``items.json`` + ``interactions/<uid>.json`` files

``GuardedRepository`` wraps any adapter for a single request, bounding the
number of concurrent store calls and honouring cooperative cancellation.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from .exceptions import RepositoryError, RequestCancelled
from .models import (
    CandidateItem,
    InteractionEvent,
    InteractionKind,
    ItemsFile,
    UserInteractionsFile,
    newest_first_key,
)

logger = logging.getLogger(__name__)


class InteractionRepository(Protocol):
    """Collaborator interface supplying interaction data and candidate items."""

    def get_interactions(
        self, user_id: str, kinds: Sequence[InteractionKind], limit: int
    ) -> List[InteractionEvent]:
        """Most recent events of ``user_id`` with one of ``kinds``, newest first."""

    def get_candidate_items(self, exclude_ids: Iterable[str], limit: int) -> List[CandidateItem]:
        """Up to ``limit`` visible items whose id is not in ``exclude_ids``."""

    def get_positive_interactors(
        self, item_ids: Iterable[str], exclude_user_id: str, limit: int
    ) -> List[str]:
        """Distinct users who liked or bookmarked any of ``item_ids``."""

    def get_interactions_for_users(
        self,
        user_ids: Iterable[str],
        kinds: Sequence[InteractionKind],
        exclude_item_ids: Iterable[str],
        limit: int,
    ) -> List[InteractionEvent]:
        """Events of ``user_ids`` with one of ``kinds`` on items outside ``exclude_item_ids``."""

    def get_engagement_in_window(
        self, since: datetime, kinds: Sequence[InteractionKind]
    ) -> List[InteractionEvent]:
        """Every event with one of ``kinds`` created at or after ``since``."""

    def get_all_time_popularity(self, limit: int) -> List[CandidateItem]:
        """Items ordered by all-time engagement, newest first on ties."""

    def get_items(self, item_ids: Iterable[str]) -> List[CandidateItem]:
        """Items for the given ids, in request order; unknown ids are skipped."""


def _event_order_key(event: InteractionEvent):
    return (-event.created_at.timestamp(), event.user_id, event.item_id or "", event.creator_id or "")


def _popularity_key(item: CandidateItem):
    return (-item.engagement_count, -item.created_at.timestamp(), item.id)


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class InMemoryInteractionRepository:
    """Repository over an immutable snapshot of items and events."""

    def __init__(
        self,
        items: Iterable[CandidateItem] = (),
        events: Iterable[InteractionEvent] = (),
    ):
        self._items: Dict[str, CandidateItem] = {}
        for item in items:
            self._items[item.id] = item
        self._events: List[InteractionEvent] = sorted(events, key=_event_order_key)

    @property
    def items(self) -> List[CandidateItem]:
        return list(self._items.values())

    @property
    def events(self) -> List[InteractionEvent]:
        return list(self._events)

    def get_interactions(
        self, user_id: str, kinds: Sequence[InteractionKind], limit: int
    ) -> List[InteractionEvent]:
        wanted = set(kinds)
        matches = [e for e in self._events if e.user_id == user_id and e.kind in wanted]
        return matches[: max(0, limit)]

    def get_candidate_items(self, exclude_ids: Iterable[str], limit: int) -> List[CandidateItem]:
        excluded = set(exclude_ids)
        candidates = [item for item in self._items.values() if item.id not in excluded]
        candidates.sort(key=newest_first_key)
        return candidates[: max(0, limit)]

    def get_positive_interactors(
        self, item_ids: Iterable[str], exclude_user_id: str, limit: int
    ) -> List[str]:
        targets = set(item_ids)
        users: List[str] = []
        seen = set()
        for event in self._events:
            if not event.is_positive or event.item_id not in targets:
                continue
            if event.user_id == exclude_user_id or event.user_id in seen:
                continue
            seen.add(event.user_id)
            users.append(event.user_id)
            if len(users) >= limit:
                break
        return users

    def get_interactions_for_users(
        self,
        user_ids: Iterable[str],
        kinds: Sequence[InteractionKind],
        exclude_item_ids: Iterable[str],
        limit: int,
    ) -> List[InteractionEvent]:
        users = set(user_ids)
        wanted = set(kinds)
        excluded = set(exclude_item_ids)
        matches = [
            e
            for e in self._events
            if e.user_id in users and e.kind in wanted and e.item_id not in excluded
        ]
        return matches[: max(0, limit)]

    def get_engagement_in_window(
        self, since: datetime, kinds: Sequence[InteractionKind]
    ) -> List[InteractionEvent]:
        wanted = set(kinds)
        return [
            e for e in self._events
            if e.kind in wanted and e.item_id is not None and e.created_at >= since
        ]

    def get_all_time_popularity(self, limit: int) -> List[CandidateItem]:
        ranked = sorted(self._items.values(), key=_popularity_key)
        return ranked[: max(0, limit)]

    def get_items(self, item_ids: Iterable[str]) -> List[CandidateItem]:
        found: List[CandidateItem] = []
        seen = set()
        for item_id in item_ids:
            if item_id in seen:
                continue
            seen.add(item_id)
            item = self._items.get(item_id)
            if item is not None:
                found.append(item)
        return found


# ---------------------------------------------------------------------------
# JSON file adapter
# ---------------------------------------------------------------------------


class JsonFileRepository:
    """Read-only repository over JSON files in ``data_dir``.

    Layout::

        data_dir/items.json                  {"items": [...]}
        data_dir/interactions/<uid>.json     {"events": [...]}

    Files are re-read on every call so edits by other processes are picked up.
    A missing file means "no data"; unreadable or invalid files raise
    ``RepositoryError``.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.items_file = self.data_dir / "items.json"
        self.interactions_dir = self.data_dir / "interactions"

    def _read_json(self, path: Path, operation: str) -> Optional[dict]:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            raise RepositoryError(operation, str(exc), {"path": str(path)}) from exc

    def _load_items(self, operation: str) -> List[CandidateItem]:
        raw = self._read_json(self.items_file, operation)
        if raw is None:
            return []
        try:
            parsed = ItemsFile.model_validate(raw)
        except ValidationError as exc:
            raise RepositoryError(operation, "invalid items file", {"path": str(self.items_file)}) from exc
        return [record.to_domain() for record in parsed.items if not record.is_hidden]

    def _user_file(self, uid: str, operation: str) -> Path:
        """Path of ``uid``'s interactions file; ids that could leave the directory are rejected."""
        if not uid or uid in (".", "..") or any(ch in uid for ch in ("/", "\\", "\x00")):
            raise RepositoryError(operation, "invalid user id", {"uid": uid})
        return self.interactions_dir / f"{uid}.json"

    def _load_user_events(self, uid: str, operation: str) -> List[InteractionEvent]:
        path = self._user_file(uid, operation)
        raw = self._read_json(path, operation)
        if raw is None:
            return []
        try:
            parsed = UserInteractionsFile.model_validate(raw)
            return [record.to_domain(uid) for record in parsed.events]
        except (ValidationError, ValueError) as exc:
            raise RepositoryError(operation, f"invalid interactions for {uid}", {"path": str(path)}) from exc

    def _known_users(self) -> List[str]:
        if not self.interactions_dir.exists():
            return []
        return sorted(path.stem for path in self.interactions_dir.glob("*.json"))

    def _snapshot(self, operation: str, user_ids: Optional[Iterable[str]] = None) -> InMemoryInteractionRepository:
        users = self._known_users() if user_ids is None else sorted(set(user_ids))
        events: List[InteractionEvent] = []
        for uid in users:
            events.extend(self._load_user_events(uid, operation))
        return InMemoryInteractionRepository(self._load_items(operation), events)

    def get_interactions(
        self, user_id: str, kinds: Sequence[InteractionKind], limit: int
    ) -> List[InteractionEvent]:
        events = self._load_user_events(user_id, "get_interactions")
        return InMemoryInteractionRepository(events=events).get_interactions(user_id, kinds, limit)

    def get_candidate_items(self, exclude_ids: Iterable[str], limit: int) -> List[CandidateItem]:
        items = self._load_items("get_candidate_items")
        return InMemoryInteractionRepository(items).get_candidate_items(exclude_ids, limit)

    def get_positive_interactors(
        self, item_ids: Iterable[str], exclude_user_id: str, limit: int
    ) -> List[str]:
        snapshot = self._snapshot("get_positive_interactors")
        return snapshot.get_positive_interactors(item_ids, exclude_user_id, limit)

    def get_interactions_for_users(
        self,
        user_ids: Iterable[str],
        kinds: Sequence[InteractionKind],
        exclude_item_ids: Iterable[str],
        limit: int,
    ) -> List[InteractionEvent]:
        user_ids = list(user_ids)
        snapshot = self._snapshot("get_interactions_for_users", user_ids)
        return snapshot.get_interactions_for_users(user_ids, kinds, exclude_item_ids, limit)

    def get_engagement_in_window(
        self, since: datetime, kinds: Sequence[InteractionKind]
    ) -> List[InteractionEvent]:
        return self._snapshot("get_engagement_in_window").get_engagement_in_window(since, kinds)

    def get_all_time_popularity(self, limit: int) -> List[CandidateItem]:
        items = self._load_items("get_all_time_popularity")
        return InMemoryInteractionRepository(items).get_all_time_popularity(limit)

    def get_items(self, item_ids: Iterable[str]) -> List[CandidateItem]:
        items = self._load_items("get_items")
        return InMemoryInteractionRepository(items).get_items(item_ids)


# ---------------------------------------------------------------------------
# Per-request guard
# ---------------------------------------------------------------------------


class GuardedRepository:
    """Bounded, cancellable view of a repository for one ranking request.

    At most ``max_concurrent`` store calls run at once. Once ``cancel_event``
    is set, every new call raises ``RequestCancelled``. Failures other than
    cancellation surface as ``RepositoryError``.
    """

    _POLL_SECONDS = 0.05

    def __init__(
        self,
        repository: InteractionRepository,
        max_concurrent: int = 4,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._repository = repository
        self._semaphore = threading.BoundedSemaphore(max(1, max_concurrent))
        self.cancel_event = cancel_event or threading.Event()
        self._closed = threading.Event()

    def close(self) -> None:
        """Reject further calls, e.g. from branches that outlived their timeout."""
        self._closed.set()

    def _call(self, operation: str, *args):
        self._check_cancelled(operation)
        while not self._semaphore.acquire(timeout=self._POLL_SECONDS):
            self._check_cancelled(operation)
        try:
            self._check_cancelled(operation)
            return getattr(self._repository, operation)(*args)
        except (RepositoryError, RequestCancelled):
            raise
        except Exception as exc:
            raise RepositoryError(operation, str(exc) or exc.__class__.__name__) from exc
        finally:
            self._semaphore.release()

    def _check_cancelled(self, operation: str) -> None:
        if self.cancel_event.is_set() or self._closed.is_set():
            raise RequestCancelled(operation)

    def get_interactions(self, user_id, kinds, limit):
        return self._call("get_interactions", user_id, tuple(kinds), limit)

    def get_candidate_items(self, exclude_ids, limit):
        return self._call("get_candidate_items", frozenset(exclude_ids), limit)

    def get_positive_interactors(self, item_ids, exclude_user_id, limit):
        return self._call("get_positive_interactors", list(item_ids), exclude_user_id, limit)

    def get_interactions_for_users(self, user_ids, kinds, exclude_item_ids, limit):
        return self._call(
            "get_interactions_for_users", list(user_ids), tuple(kinds), frozenset(exclude_item_ids), limit
        )

    def get_engagement_in_window(self, since, kinds):
        return self._call("get_engagement_in_window", since, tuple(kinds))

    def get_all_time_popularity(self, limit):
        return self._call("get_all_time_popularity", limit)

    def get_items(self, item_ids):
        return self._call("get_items", list(item_ids))
