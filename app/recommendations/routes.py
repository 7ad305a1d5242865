"""
Recommendation routes for API endpoints.
"""

import logging
from functools import wraps
from typing import Optional

from flask import Blueprint, jsonify, request

from recommendation_service.exceptions import RepositoryUnavailable

from .rate_limiter import SlidingWindowRateLimiter
from .services import RecommendationService

logger = logging.getLogger(__name__)


def _client_ip() -> str:
    """Get client IP address.

    Forwarding headers are not read here; deployments behind a proxy wrap
    the app in ProxyFix, which rewrites remote_addr for trusted hops only.
    """
    return request.remote_addr or "unknown"


def create_recommendation_routes(
    service: RecommendationService,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> Blueprint:
    """Create recommendation routes blueprint.

    Args:
        service: RecommendationService backing every route
        rate_limiter: Optional limiter keyed by uid cookie, or client IP for guests

    Returns:
        Flask blueprint with recommendation routes
    """
    bp = Blueprint('recommendations', __name__, url_prefix='/api/recommendations')

    @bp.before_request
    def enforce_rate_limit():
        if rate_limiter is None:
            return None
        uid = request.cookies.get("uid")
        key = f"user:{uid}" if uid else f"ip:{_client_ip()}"
        result = rate_limiter.check_and_consume(key)
        if result.allowed:
            return None
        response = jsonify({"error": "rate-limited", **result.to_dict()})
        response.status_code = 429
        if result.retry_after is not None:
            response.headers["Retry-After"] = str(max(1, int(result.retry_after + 0.999)))
        return response

    def requires_uid(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            uid = request.cookies.get("uid")
            if not uid:
                return jsonify({"error": "no-uid"}), 400
            return view(uid, *args, **kwargs)
        return wrapper

    def _query():
        return service.parse_query(
            request.args.get('limit'),
            exclude=request.args.get('exclude'),
            window=request.args.get('window'),
        )

    @bp.errorhandler(RepositoryUnavailable)
    def handle_unavailable(exc: RepositoryUnavailable):
        logger.error(f"Recommendation store unavailable: {exc}")
        return jsonify({"error": "store-unavailable", "message": exc.message}), 503

    @bp.route('/smart', methods=['GET'])
    @requires_uid
    def get_smart(uid):
        """
        Merged personalized, collaborative and trending recommendations.

        Query parameters:
            - limit: Maximum items to return (default 20, max 50)
            - exclude: Comma-separated item ids to leave out
        """
        return jsonify(service.smart(uid, _query()))

    @bp.route('/personalized', methods=['GET'])
    @requires_uid
    def get_personalized(uid):
        return jsonify(service.personalized(uid, _query()))

    @bp.route('/collaborative', methods=['GET'])
    @requires_uid
    def get_collaborative(uid):
        return jsonify(service.collaborative(uid, _query()))

    @bp.route('/profile', methods=['GET'])
    @requires_uid
    def get_profile(uid):
        """Preference profile derived from the viewer's history."""
        return jsonify(service.profile(uid))

    @bp.route('/trending', methods=['GET'])
    def get_trending():
        """
        Trending items.

        Query parameters:
            - window: day, week or month (default week; invalid values use the default)
            - limit: Maximum items to return (default 20, max 50)
        """
        return jsonify(service.trending(_query()))

    @bp.route('/similar/<item_id>', methods=['GET'])
    def get_similar(item_id):
        return jsonify(service.similar(item_id, _query()))

    @bp.route('/new-user', methods=['GET'])
    def get_new_user():
        """Popularity list for viewers without any history."""
        return jsonify(service.new_user(_query()))

    return bp
