# Recommendation service package for artwork ranking

from .exceptions import (
    RecommendationError,
    RepositoryError,
    RepositoryUnavailable,
    RequestCancelled,
)
from .repository import (
    GuardedRepository,
    InMemoryInteractionRepository,
    InteractionRepository,
    JsonFileRepository,
)
from .recommendations import RecommendationEngine
from .logging_config import (
    setup_logging,
    stop_logging,
    get_logger,
    ThreadSafeLoggingConfig,
)

__all__ = [
    "RecommendationError",
    "RepositoryError",
    "RepositoryUnavailable",
    "RequestCancelled",
    "GuardedRepository",
    "InMemoryInteractionRepository",
    "InteractionRepository",
    "JsonFileRepository",
    "RecommendationEngine",
    "setup_logging",
    "stop_logging",
    "get_logger",
    "ThreadSafeLoggingConfig",
]
