"""
Tests for preference profile inference.
"""

import math
from datetime import datetime, timedelta, timezone

from recommendation_service.models import (
    CandidateItem,
    InteractionEvent,
    InteractionKind,
    PreferenceProfile,
    PriceRange,
)
from recommendation_service.recommendations import PreferenceProfileBuilder

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _item(item_id, category="painting", creator="artist", price=10.0):
    return CandidateItem(
        id=item_id,
        creator_id=creator,
        category=category,
        price=price,
        created_at=NOW - timedelta(days=30),
    )


def _event(kind, item_id=None, minutes_ago=0, creator_id=None, user="viewer"):
    return InteractionEvent(
        user_id=user,
        kind=kind,
        created_at=NOW - timedelta(minutes=minutes_ago),
        item_id=item_id,
        creator_id=creator_id,
    )


class TestPreferenceProfileBuilder:
    """Category, creator and price inference from history."""

    def setup_method(self):
        self.builder = PreferenceProfileBuilder()

    def test_weighted_categories(self):
        """Two likes outweigh one bookmark."""
        items = {
            "p1": _item("p1", category="painting"),
            "p2": _item("p2", category="painting"),
            "s1": _item("s1", category="sculpture"),
        }
        events = [
            _event(InteractionKind.LIKE, "p1", 1),
            _event(InteractionKind.LIKE, "p2", 2),
            _event(InteractionKind.BOOKMARK, "s1", 3),
        ]

        profile = self.builder.build(events, items)

        assert profile.favorite_categories == ("painting", "sculpture")

    def test_price_range_uses_median_of_weighted_samples(self):
        """A bookmark contributes its price three times."""
        items = {
            "cheap": _item("cheap", price=10.0),
            "mid": _item("mid", price=20.0),
        }
        events = [
            _event(InteractionKind.LIKE, "cheap", 1),
            _event(InteractionKind.BOOKMARK, "mid", 2),
        ]

        profile = self.builder.build(events, items)

        assert profile.price_range == PriceRange(min=10.0, max=30.0)

    def test_empty_history_gives_empty_profile(self):
        profile = self.builder.build([], {})

        assert profile == PreferenceProfile()
        assert profile.is_empty
        assert profile.price_range.min == 0.0
        assert math.isinf(profile.price_range.max)

    def test_follow_counts_towards_creator_only(self):
        """Follows carry weight 5 but add no category or price sample."""
        items = {"a1": _item("a1", creator="alice", price=50.0)}
        events = [
            _event(InteractionKind.LIKE, "a1", 1),
            _event(InteractionKind.FOLLOW, creator_id="bob", minutes_ago=2),
        ]

        profile = self.builder.build(events, items)

        assert profile.favorite_creators == ("bob", "alice")
        assert profile.favorite_categories == ("painting",)
        assert profile.price_range == PriceRange(min=25.0, max=75.0)

    def test_view_events_are_ignored(self):
        items = {"v1": _item("v1")}
        events = [_event(InteractionKind.VIEW, "v1", 1)]

        assert self.builder.build(events, items).is_empty

    def test_missing_items_are_skipped(self):
        items = {"known": _item("known", category="photo")}
        events = [
            _event(InteractionKind.BOOKMARK, "deleted", 1),
            _event(InteractionKind.LIKE, "known", 2),
        ]

        profile = self.builder.build(events, items)

        assert profile.favorite_categories == ("photo",)
        assert profile.price_range == PriceRange(min=5.0, max=15.0)

    def test_ties_break_alphabetically(self):
        items = {
            "z": _item("z", category="zines", creator="zed"),
            "a": _item("a", category="acrylic", creator="amy"),
        }
        events = [
            _event(InteractionKind.LIKE, "z", 1),
            _event(InteractionKind.LIKE, "a", 2),
        ]

        profile = self.builder.build(events, items)

        assert profile.favorite_categories == ("acrylic", "zines")
        assert profile.favorite_creators == ("amy", "zed")

    def test_profile_is_bounded(self):
        """At most three categories and ten creators are kept."""
        items = {}
        events = []
        for index in range(12):
            item_id = f"item-{index:02d}"
            items[item_id] = _item(item_id, category=f"cat-{index % 5}", creator=f"creator-{index:02d}")
            events.append(_event(InteractionKind.LIKE, item_id, index))

        profile = self.builder.build(events, items)

        assert len(profile.favorite_categories) == 3
        assert len(profile.favorite_creators) == 10
        # cat-0 and cat-1 have three likes each, the rest two
        assert profile.favorite_categories[:2] == ("cat-0", "cat-1")

    def test_only_most_recent_history_is_used(self):
        builder = PreferenceProfileBuilder(history_limit=2)
        items = {
            "old": _item("old", category="ceramics"),
            "new1": _item("new1", category="digital"),
            "new2": _item("new2", category="digital"),
        }
        events = [
            _event(InteractionKind.BOOKMARK, "old", 500),
            _event(InteractionKind.LIKE, "new1", 1),
            _event(InteractionKind.LIKE, "new2", 2),
        ]

        profile = builder.build(events, items)

        assert profile.favorite_categories == ("digital",)

    def test_build_is_deterministic(self):
        items = {"p1": _item("p1"), "s1": _item("s1", category="sculpture", creator="sam")}
        events = [
            _event(InteractionKind.LIKE, "p1", 1),
            _event(InteractionKind.BOOKMARK, "s1", 1),
        ]

        first = self.builder.build(events, items)
        second = self.builder.build(list(reversed(events)), items)

        assert first == second


class TestPriceRange:
    """Price range helpers."""

    def test_contains_is_inclusive(self):
        price_range = PriceRange(min=10.0, max=30.0)

        assert price_range.contains(10.0)
        assert price_range.contains(30.0)
        assert not price_range.contains(30.01)

    def test_unbounded_range_serializes_max_as_none(self):
        assert PriceRange().to_dict() == {"min": 0.0, "max": None}
        assert PriceRange().is_unbounded
        assert not PriceRange(min=1.0, max=2.0).is_unbounded
