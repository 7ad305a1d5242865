"""
Tests for the bundled repository adapters and the per-request guard.
"""

import json
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from recommendation_service.exceptions import RepositoryError, RequestCancelled
from recommendation_service.models import (
    POSITIVE_KINDS,
    PROFILE_KINDS,
    CandidateItem,
    InteractionEvent,
    InteractionKind,
)
from recommendation_service.repository import (
    GuardedRepository,
    InMemoryInteractionRepository,
    JsonFileRepository,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _item(item_id, days_old=1, engagement=0):
    return CandidateItem(
        id=item_id,
        creator_id="artist",
        category="painting",
        price=10.0,
        created_at=NOW - timedelta(days=days_old),
        engagement_count=engagement,
    )


def _event(user, item_id, hours_ago, kind=InteractionKind.LIKE):
    return InteractionEvent(
        user_id=user, kind=kind, created_at=NOW - timedelta(hours=hours_ago), item_id=item_id
    )


class TestInMemoryInteractionRepository:
    """Query semantics of the in-memory adapter."""

    def setup_method(self):
        self.repo = InMemoryInteractionRepository(
            [_item("old", days_old=9, engagement=4), _item("new", days_old=1), _item("mid", days_old=5, engagement=4)],
            [
                _event("u1", "old", 5),
                _event("u1", "new", 1, kind=InteractionKind.BOOKMARK),
                _event("u1", "mid", 3, kind=InteractionKind.VIEW),
                _event("u2", "old", 2),
                _event("u3", "new", 4),
            ],
        )

    def test_interactions_newest_first_filtered_by_kind(self):
        events = self.repo.get_interactions("u1", POSITIVE_KINDS, 10)

        assert [e.item_id for e in events] == ["new", "old"]

    def test_interactions_respect_limit(self):
        assert len(self.repo.get_interactions("u1", PROFILE_KINDS, 1)) == 1

    def test_candidates_exclude_ids_newest_first(self):
        items = self.repo.get_candidate_items({"new"}, 10)

        assert [i.id for i in items] == ["mid", "old"]

    def test_positive_interactors(self):
        users = self.repo.get_positive_interactors(["old", "new"], "u1", 10)

        assert users == ["u2", "u3"]

    def test_interactions_for_users_skip_excluded_items(self):
        events = self.repo.get_interactions_for_users(["u2", "u3"], POSITIVE_KINDS, ["old"], 10)

        assert [(e.user_id, e.item_id) for e in events] == [("u3", "new")]

    def test_engagement_in_window(self):
        events = self.repo.get_engagement_in_window(NOW - timedelta(hours=3), POSITIVE_KINDS)

        assert [(e.user_id, e.item_id) for e in events] == [("u1", "new"), ("u2", "old")]

    def test_all_time_popularity_ties_prefer_newer(self):
        items = self.repo.get_all_time_popularity(2)

        assert [i.id for i in items] == ["mid", "old"]

    def test_get_items_keeps_request_order(self):
        items = self.repo.get_items(["new", "missing", "old", "new"])

        assert [i.id for i in items] == ["new", "old"]


class TestJsonFileRepository:
    """JSON file adapter."""

    def _write(self, path, payload):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload), encoding="utf-8")

    def _seed(self, tmp_path):
        self._write(tmp_path / "items.json", {
            "items": [
                {"id": "a1", "creator_id": "alice", "category": "painting", "price": 20,
                 "created_at": "2025-05-30T00:00:00Z", "engagement_count": 3},
                {"id": "b1", "creator_id": "bob", "category": "sculpture", "price": 80,
                 "created_at": "2025-05-31T00:00:00", "comment_count": 2},
                {"id": "h1", "creator_id": "bob", "category": "sculpture", "price": 80,
                 "created_at": "2025-05-31T00:00:00Z", "is_hidden": True},
            ]
        })
        self._write(tmp_path / "interactions" / "viewer.json", {
            "events": [
                {"kind": "like", "ts": "2025-05-31T10:00:00Z", "item_id": "a1"},
                {"kind": "follow", "ts": "2025-05-31T12:00:00Z", "creator_id": "bob"},
                {"kind": "view", "ts": "2025-05-31T13:00:00Z", "item_id": "b1"},
            ]
        })
        self._write(tmp_path / "interactions" / "other.json", {
            "events": [{"kind": "bookmark", "ts": "2025-05-31T09:00:00Z", "item_id": "a1"}]
        })
        return JsonFileRepository(tmp_path)

    def test_reads_items_and_hides_hidden(self, tmp_path):
        repo = self._seed(tmp_path)

        items = repo.get_candidate_items([], 10)

        assert [i.id for i in items] == ["b1", "a1"]
        assert items[0].created_at.tzinfo is not None
        assert items[0].comment_count == 2

    def test_reads_user_interactions(self, tmp_path):
        repo = self._seed(tmp_path)

        events = repo.get_interactions("viewer", PROFILE_KINDS, 10)

        assert [e.kind for e in events] == [InteractionKind.FOLLOW, InteractionKind.LIKE]
        assert events[0].creator_id == "bob"
        assert events[0].user_id == "viewer"

    def test_cross_user_queries(self, tmp_path):
        repo = self._seed(tmp_path)

        assert repo.get_positive_interactors(["a1"], "viewer", 10) == ["other"]
        window = repo.get_engagement_in_window(datetime(2025, 5, 31, tzinfo=timezone.utc), POSITIVE_KINDS)
        assert sorted(e.user_id for e in window) == ["other", "viewer"]

    def test_missing_files_mean_no_data(self, tmp_path):
        repo = JsonFileRepository(tmp_path / "empty")

        assert repo.get_candidate_items([], 10) == []
        assert repo.get_interactions("nobody", PROFILE_KINDS, 10) == []
        assert repo.get_positive_interactors(["a1"], "nobody", 10) == []

    def test_corrupt_items_file_raises(self, tmp_path):
        (tmp_path / "items.json").write_text("{not json", encoding="utf-8")
        repo = JsonFileRepository(tmp_path)

        with pytest.raises(RepositoryError) as exc_info:
            repo.get_all_time_popularity(5)

        assert exc_info.value.operation == "get_all_time_popularity"

    def test_invalid_interaction_raises(self, tmp_path):
        self._write(tmp_path / "interactions" / "bad.json", {
            "events": [{"kind": "follow", "ts": "2025-05-31T12:00:00Z"}]
        })
        repo = JsonFileRepository(tmp_path)

        with pytest.raises(RepositoryError):
            repo.get_interactions("bad", PROFILE_KINDS, 10)

    def test_unknown_kind_raises(self, tmp_path):
        self._write(tmp_path / "interactions" / "bad.json", {
            "events": [{"kind": "share", "ts": "2025-05-31T12:00:00Z", "item_id": "a1"}]
        })
        repo = JsonFileRepository(tmp_path)

        with pytest.raises(RepositoryError):
            repo.get_interactions("bad", PROFILE_KINDS, 10)

    @pytest.mark.parametrize("uid", ["../secret", "..", "nested/viewer", "..\\secret", ""])
    def test_user_id_cannot_leave_interactions_dir(self, tmp_path, uid):
        data_dir = tmp_path / "data"
        self._write(data_dir / "secret.json", {
            "events": [{"kind": "like", "ts": "2025-05-31T10:00:00Z", "item_id": "a1"}]
        })
        repo = JsonFileRepository(data_dir)

        with pytest.raises(RepositoryError) as exc_info:
            repo.get_interactions(uid, PROFILE_KINDS, 10)

        assert exc_info.value.operation == "get_interactions"

    def test_neighbor_ids_are_checked_too(self, tmp_path):
        repo = self._seed(tmp_path)

        with pytest.raises(RepositoryError):
            repo.get_interactions_for_users(["other", "../items"], POSITIVE_KINDS, [], 10)


class FlakyRepository(InMemoryInteractionRepository):
    def get_items(self, item_ids):
        raise ConnectionError("timeout talking to store")


class CountingRepository(InMemoryInteractionRepository):
    """Records the peak number of overlapping calls."""

    def __init__(self):
        super().__init__([_item("a")])
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def get_items(self, item_ids):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.05)
        with self._lock:
            self.active -= 1
        return super().get_items(item_ids)


class TestGuardedRepository:
    """Concurrency bound, cancellation and error wrapping."""

    def test_wraps_unexpected_errors(self):
        guard = GuardedRepository(FlakyRepository())

        with pytest.raises(RepositoryError) as exc_info:
            guard.get_items(["a"])

        assert exc_info.value.operation == "get_items"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_cancelled_guard_rejects_calls(self):
        cancel = threading.Event()
        guard = GuardedRepository(InMemoryInteractionRepository([_item("a")]), cancel_event=cancel)

        assert [i.id for i in guard.get_items(["a"])] == ["a"]
        cancel.set()
        with pytest.raises(RequestCancelled):
            guard.get_items(["a"])

    def test_closed_guard_rejects_calls(self):
        guard = GuardedRepository(InMemoryInteractionRepository())
        guard.close()

        with pytest.raises(RequestCancelled):
            guard.get_all_time_popularity(5)

    def test_bounds_concurrent_calls(self):
        repo = CountingRepository()
        guard = GuardedRepository(repo, max_concurrent=2)
        threads = [threading.Thread(target=guard.get_items, args=(["a"],)) for _ in range(6)]

        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert repo.peak <= 2
