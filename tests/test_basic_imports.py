"""
Basic import tests to verify the core functionality.
"""

import logging

import pytest


def test_recommendation_service_imports():
    """Test that the engine package exposes its public API."""
    from recommendation_service import (
        GuardedRepository,
        InMemoryInteractionRepository,
        JsonFileRepository,
        RecommendationEngine,
        RepositoryError,
        RepositoryUnavailable,
        RequestCancelled,
    )

    assert issubclass(RepositoryUnavailable, Exception)
    assert callable(RecommendationEngine)
    assert callable(GuardedRepository)
    assert callable(InMemoryInteractionRepository)
    assert callable(JsonFileRepository)
    assert RepositoryError("get_items", "boom").operation == "get_items"
    assert "get_items" in str(RequestCancelled("get_items"))


def test_record_models_convert_to_domain():
    """Test that storage records validate and convert."""
    from recommendation_service.models import InteractionKind, InteractionRecord, ItemRecord

    item = ItemRecord(id="a1", creator_id="alice", created_at="2025-01-01T00:00:00")
    event = InteractionRecord(kind="bookmark", ts="2025-01-02T00:00:00Z", item_id="a1")

    assert item.to_domain().created_at.tzinfo is not None
    assert item.to_domain().price == 0.0
    assert event.to_domain("viewer").kind is InteractionKind.BOOKMARK
    assert event.to_domain("viewer").weight == 3


def test_interaction_kind_helpers():
    from recommendation_service.models import InteractionKind, TrendingWindow

    assert InteractionKind.is_valid("like")
    assert not InteractionKind.is_valid("share")
    assert InteractionKind.VIEW.weight == 0
    assert TrendingWindow.parse(None, TrendingWindow.WEEK) is TrendingWindow.WEEK
    assert TrendingWindow.parse(" Day ", TrendingWindow.WEEK) is TrendingWindow.DAY


def test_interaction_event_requires_target():
    from datetime import datetime, timezone

    from recommendation_service.models import InteractionEvent, InteractionKind

    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        InteractionEvent("viewer", InteractionKind.FOLLOW, now, item_id="a1")
    with pytest.raises(ValueError):
        InteractionEvent("viewer", InteractionKind.LIKE, now)


def test_logging_setup_and_teardown():
    """Test that queue-based logging can be started and stopped repeatedly."""
    from recommendation_service.logging_config import get_logger, setup_logging, stop_logging

    root_logger = logging.getLogger()
    saved_handlers, saved_level = list(root_logger.handlers), root_logger.level

    setup_logging(debug=True)
    try:
        setup_logging(debug=False)
        logger = get_logger("recommendation_service.test")
        logger.info("logging smoke test")
        assert isinstance(logger, logging.Logger)
    finally:
        stop_logging()
        root_logger.handlers[:] = saved_handlers
        root_logger.setLevel(saved_level)
