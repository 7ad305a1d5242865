"""
Tests for priority-dedup merging of ranked sources.
"""

from datetime import datetime, timedelta, timezone

import pytest

from recommendation_service.models import CandidateItem, ScoredItem
from recommendation_service.recommendations import RankedSource, RankingMerger, SourceDecay

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _item(item_id, days_old=10, engagement=0):
    return CandidateItem(
        id=item_id,
        creator_id="artist",
        category="painting",
        price=10.0,
        created_at=NOW - timedelta(days=days_old),
        engagement_count=engagement,
    )


def _source(name, item_ids, priority, items=None):
    items = items or {}
    return RankedSource(
        name=name,
        items=[
            ScoredItem(item=items.get(item_id, _item(item_id)), score=1.0, rank=rank, source=name)
            for rank, item_id in enumerate(item_ids)
        ],
        priority=priority,
    )


def _scores(result):
    return {scored.item_id: scored.score for scored in result.items}


class TestRankingMerger:
    """Merge priority, dedup, limits and fallback."""

    def setup_method(self):
        self.merger = RankingMerger()

    def test_first_source_mention_wins(self):
        sources = [
            _source("personalized", ["A", "B", "C"], 1),
            _source("collaborative", ["B", "D"], 2),
            _source("trending", ["D", "E"], 3),
        ]

        result = self.merger.merge(sources, limit=5)

        assert [s.item_id for s in result.items] == ["A", "B", "C", "D", "E"]
        assert _scores(result) == {"A": 100.0, "B": 97.0, "C": 94.0, "D": 70.0, "E": 40.0}
        assert [s.rank for s in result.items] == [0, 1, 2, 3, 4]
        assert result.items[1].source == "personalized"
        assert result.items[3].source == "collaborative"
        assert not result.used_fallback
        assert result.contributions == {"personalized": 3, "collaborative": 1, "trending": 1}

    def test_sources_are_walked_by_priority_not_input_order(self):
        sources = [
            _source("trending", ["X"], 3),
            _source("personalized", ["X"], 1),
        ]

        result = self.merger.merge(sources, limit=5)

        assert result.items[0].source == "personalized"
        assert result.items[0].score == 100.0

    def test_output_has_unique_ids_and_respects_limit(self):
        sources = [
            _source("personalized", ["A", "B", "C"], 1),
            _source("collaborative", ["C", "B", "A", "D"], 2),
            _source("trending", ["A", "E", "F"], 3),
        ]

        result = self.merger.merge(sources, limit=4)

        ids = [s.item_id for s in result.items]
        assert len(ids) == 4
        assert len(set(ids)) == 4
        assert ids == ["A", "B", "C", "D"]

    def test_zero_limit_returns_nothing(self):
        result = self.merger.merge([_source("personalized", ["A"], 1)], limit=0)
        assert result.items == []

    def test_decayed_scores_clamp_at_zero(self):
        ids = [f"item-{i:02d}" for i in range(40)]

        result = self.merger.merge([_source("personalized", ids, 1)], limit=40)

        scores = _scores(result)
        assert scores["item-00"] == 100.0
        assert scores["item-33"] == 1.0
        assert scores["item-34"] == 0.0
        assert scores["item-39"] == 0.0
        assert all(s.score >= 0 for s in result.items)

    def test_equal_scores_prefer_newer_then_lower_id(self):
        items = {
            "old": _item("old", days_old=30),
            "new": _item("new", days_old=1),
        }
        decays = {"a": SourceDecay(10.0, 0.0), "b": SourceDecay(10.0, 0.0)}
        merger = RankingMerger(decays=decays)

        result = merger.merge(
            [_source("a", ["old"], 1, items), _source("b", ["new"], 2, items)], limit=5
        )

        assert [s.item_id for s in result.items] == ["new", "old"]

    def test_merge_is_deterministic(self):
        sources = [
            _source("personalized", ["A", "B"], 1),
            _source("collaborative", ["C"], 2),
            _source("trending", ["D", "A"], 3),
        ]

        first = self.merger.merge(sources, limit=10)
        second = self.merger.merge(sources, limit=10)

        assert first.items == second.items

    def test_all_sources_empty_uses_fallback(self):
        popular = [_item("low", engagement=1), _item("high", engagement=9)]
        sources = [
            _source("personalized", [], 1),
            _source("collaborative", [], 2),
            _source("trending", [], 3),
        ]

        result = self.merger.merge(sources, limit=5, fallback_candidates=lambda: popular)

        assert result.used_fallback
        assert [s.item_id for s in result.items] == ["high", "low"]
        assert all(s.source == "fallback" for s in result.items)

    def test_fallback_not_called_when_sources_have_items(self):
        def explode():
            raise AssertionError("fallback should not be consulted")

        result = self.merger.merge(
            [_source("trending", ["A"], 3)], limit=5, fallback_candidates=explode
        )

        assert [s.item_id for s in result.items] == ["A"]

    def test_fallback_errors_propagate(self):
        def broken():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            self.merger.merge([], limit=5, fallback_candidates=broken)

    def test_unknown_source_is_rejected(self):
        with pytest.raises(ValueError):
            self.merger.merge([_source("mystery", ["A"], 1)], limit=5)
