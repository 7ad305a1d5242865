"""
Recommendation service for the web layer.

Thin adapter between the Flask routes and ``RecommendationEngine``: validates
query parameters and turns engine results into JSON-ready dictionaries.
"""

from typing import Any, Dict, Iterable, Optional

from recommendation_service.models import RankingRequest, TrendingWindow
from recommendation_service.recommendations import RecommendationEngine

from .models import RecommendationQuery

MAX_LIMIT = 50


class RecommendationService:
    """Serves engine results to the recommendation routes."""

    def __init__(
        self,
        engine: RecommendationEngine,
        default_limit: int = 20,
        default_window: TrendingWindow = TrendingWindow.WEEK,
    ):
        """
        Initialize RecommendationService.

        Args:
            engine: Engine used for every request
            default_limit: Limit used when the request does not specify one
            default_window: Trending window used when the request gives none or an invalid one
        """
        self.engine = engine
        self.default_limit = default_limit
        self.default_window = default_window

    def parse_query(
        self,
        limit: Optional[str],
        exclude: Optional[str] = None,
        window: Optional[str] = None,
    ) -> RecommendationQuery:
        """Parse raw query-string values, clamping the limit to 1..MAX_LIMIT."""
        try:
            parsed_limit = int(limit) if limit not in (None, "") else self.default_limit
        except ValueError:
            parsed_limit = self.default_limit
        parsed_limit = max(1, min(parsed_limit, MAX_LIMIT))

        exclude_ids = frozenset(part.strip() for part in (exclude or "").split(",") if part.strip())
        return RecommendationQuery(limit=parsed_limit, exclude_ids=exclude_ids, window=window)

    def smart(self, uid: str, query: RecommendationQuery) -> Dict[str, Any]:
        request = RankingRequest(viewer_id=uid, limit=query.limit, exclude_ids=query.exclude_ids)
        result = self.engine.recommend(request)
        return result.to_dict()

    def personalized(self, uid: str, query: RecommendationQuery) -> Dict[str, Any]:
        items = self.engine.get_personalized_recommendations(uid, query.limit, query.exclude_ids)
        return _listing(items)

    def collaborative(self, uid: str, query: RecommendationQuery) -> Dict[str, Any]:
        items = self.engine.get_collaborative_recommendations(uid, query.limit, query.exclude_ids)
        return _listing(items)

    def trending(self, query: RecommendationQuery) -> Dict[str, Any]:
        window = TrendingWindow.parse(query.window, self.default_window)
        items = self.engine.get_trending_items(window, query.limit)
        payload = _listing(items)
        payload["window"] = window.value
        return payload

    def similar(self, item_id: str, query: RecommendationQuery) -> Dict[str, Any]:
        items = self.engine.get_similar_items(item_id, query.limit, query.exclude_ids)
        payload = _listing(items)
        payload["anchor_id"] = item_id
        return payload

    def new_user(self, query: RecommendationQuery) -> Dict[str, Any]:
        return _listing(self.engine.get_new_user_recommendations(query.limit))

    def profile(self, uid: str) -> Dict[str, Any]:
        profile = self.engine.build_preference_profile(uid)
        payload = profile.to_dict()
        payload["is_empty"] = profile.is_empty
        return payload


def _listing(items: Iterable) -> Dict[str, Any]:
    serialized = [item.to_dict() for item in items]
    return {"items": serialized, "count": len(serialized)}
