"""
Factory for creating the recommendations module.
"""
from typing import Optional

from recommendation_service.models import TrendingWindow
from recommendation_service.recommendations import RecommendationEngine
from recommendation_service.repository import InteractionRepository

from .rate_limiter import SlidingWindowRateLimiter
from .routes import create_recommendation_routes
from .services import RecommendationService


def create_recommendations_module(
    repository: InteractionRepository,
    engine_config=None,
    rate_limit_config=None,
    engine: Optional[RecommendationEngine] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> dict:
    """
    Create the recommendations module with all its components.

    Args:
        repository: Store adapter supplying interactions and candidate items
        engine_config: Optional EngineConfig from config_manager
        rate_limit_config: Optional RateLimitConfig; no limiting when omitted
        engine: Pre-built engine (overrides engine_config)
        rate_limiter: Pre-built limiter (overrides rate_limit_config)

    Returns:
        Dictionary containing:
            - engine: RecommendationEngine instance
            - service: RecommendationService instance
            - rate_limiter: SlidingWindowRateLimiter or None
            - blueprint: Flask blueprint for routes
    """
    default_limit = 20
    default_window = TrendingWindow.WEEK

    if engine_config is not None:
        default_limit = engine_config.default_limit
        default_window = TrendingWindow.parse(engine_config.trending_window, TrendingWindow.WEEK)

    if engine is None:
        engine_kwargs = {}
        if engine_config is not None:
            engine_kwargs = {
                "candidate_limit": engine_config.candidate_limit,
                "history_limit": engine_config.history_limit,
                "neighbor_limit": engine_config.neighbor_limit,
                "neighbor_interaction_limit": engine_config.neighbor_interaction_limit,
                "branch_timeout": engine_config.branch_timeout_seconds,
                "max_concurrent_queries": engine_config.max_concurrent_queries,
                "trending_window": default_window,
            }
        engine = RecommendationEngine(repository, **engine_kwargs)

    if rate_limiter is None and rate_limit_config is not None:
        rate_limiter = SlidingWindowRateLimiter(
            max_requests=rate_limit_config.max_requests,
            window_seconds=rate_limit_config.window_seconds,
        )

    service = RecommendationService(engine, default_limit=default_limit, default_window=default_window)
    blueprint = create_recommendation_routes(service, rate_limiter)

    return {
        "engine": engine,
        "service": service,
        "rate_limiter": rate_limiter,
        "blueprint": blueprint,
    }
