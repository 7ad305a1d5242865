"""
Recommendations module serving the artwork ranking engine over HTTP.
"""

from .services import RecommendationService
from .rate_limiter import SlidingWindowRateLimiter
from .routes import create_recommendation_routes
from .factory import create_recommendations_module

__all__ = [
    'RecommendationService',
    'SlidingWindowRateLimiter',
    'create_recommendation_routes',
    'create_recommendations_module',
]
