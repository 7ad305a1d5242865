#!/usr/bin/env python3
"""
Debug tool for recommendation system.

Usage:
    python debug/debug_recommendations.py <user_id> [limit]

Example:
    python debug/debug_recommendations.py yu 10
"""

import sys
from pathlib import Path
from typing import List

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import get_engine_config, get_paths_config
from recommendation_service.models import RankingRequest, ScoredItem, TrendingWindow
from recommendation_service.recommendations import RecommendationEngine
from recommendation_service.repository import JsonFileRepository


def print_section(title: str):
    """Print a section header."""
    print(f"\n{'='*80}")
    print(f"  {title}")
    print(f"{'='*80}")


def print_items(title: str, items: List[ScoredItem]):
    """Print scored items in a formatted way."""
    print(f"\n{title}:")
    if not items:
        print("  (empty)")
        return
    for scored in items:
        item = scored.item
        reasons = ", ".join(scored.reasons) or "-"
        print(
            f"  #{scored.rank:<3d} {item.id:20s} score={scored.score:7.2f} "
            f"src={scored.source or '-':13s} cat={item.category:12s} "
            f"creator={item.creator_id:12s} reasons=[{reasons}]"
        )


def debug_recommendations(uid: str, limit: int = 10):
    """Debug recommendation system for a specific user."""
    project_root = Path(__file__).parent.parent
    data_dir = project_root / get_paths_config().data_dir
    engine_config = get_engine_config()

    print_section(f"Recommendation Debug for User: {uid}")
    print(f"\n  Data directory: {data_dir}")

    repository = JsonFileRepository(data_dir)
    window = TrendingWindow.parse(engine_config.trending_window, TrendingWindow.WEEK)

    with RecommendationEngine(
        repository,
        candidate_limit=engine_config.candidate_limit,
        history_limit=engine_config.history_limit,
        neighbor_limit=engine_config.neighbor_limit,
        neighbor_interaction_limit=engine_config.neighbor_interaction_limit,
        branch_timeout=engine_config.branch_timeout_seconds,
        max_concurrent_queries=engine_config.max_concurrent_queries,
        trending_window=window,
    ) as engine:
        print_section("Preference Profile")
        profile = engine.build_preference_profile(uid)
        print(f"\n  Favorite categories: {list(profile.favorite_categories) or '(none)'}")
        print(f"  Favorite creators:   {list(profile.favorite_creators) or '(none)'}")
        price = profile.price_range.to_dict()
        print(f"  Price range:         {price['min']} .. {price['max'] if price['max'] is not None else 'inf'}")
        if profile.is_empty:
            print("\n  ⚠️  Empty profile: personalized ranking uses popularity/recency only")

        print_section("Smart Recommendations")
        result = engine.recommend(RankingRequest(viewer_id=uid, limit=limit))

        print("\nSource outcomes:")
        for name, outcome in result.outcomes.items():
            error = f" error={outcome.error}" if outcome.error else ""
            print(f"  {name:15s} {outcome.status.value:10s} items={len(outcome.items):3d}{error}")
            print_items(f"  {name} ranking", outcome.items)

        print_items("\nMerged", result.items)

        if result.used_fallback:
            print(f"\n  ⚠️  All sources empty; showing all-time popularity (cold start)")
        else:
            print(f"\n  ✓ Recommendations working!")
            if result.items:
                print(f"     Top recommendation: {result.items[0].item.id}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python debug/debug_recommendations.py <user_id> [limit]")
        print("Example: python debug/debug_recommendations.py yu 10")
        sys.exit(1)

    uid = sys.argv[1]
    limit = int(sys.argv[2]) if len(sys.argv) > 2 else 10
    try:
        debug_recommendations(uid, limit)
    except Exception as e:
        print(f"\n❌ Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)
