"""
Recommendation engine package for personalized artwork ordering.

Provides the individual rankers plus an engine facade that can be reused by
the web layer, batch jobs or debug tooling without creating Flask dependencies.
"""

from .collaborative import CollaborativeRanker, NeighborFinder
from .engine import (
    OutcomeStatus,
    RecommendationEngine,
    SmartRecommendationResult,
    SourceOutcome,
)
from .merger import DEFAULT_DECAYS, MergeResult, RankedSource, RankingMerger, SourceDecay
from .personalized import PersonalizedRanker
from .popularity import FallbackRanker, TrendingRanker
from .profile import PreferenceProfileBuilder
from .similar import SimilarItemsRanker

__all__ = [
    "CollaborativeRanker",
    "NeighborFinder",
    "OutcomeStatus",
    "RecommendationEngine",
    "SmartRecommendationResult",
    "SourceOutcome",
    "DEFAULT_DECAYS",
    "MergeResult",
    "RankedSource",
    "RankingMerger",
    "SourceDecay",
    "PersonalizedRanker",
    "FallbackRanker",
    "TrendingRanker",
    "PreferenceProfileBuilder",
    "SimilarItemsRanker",
]
