"""
Models package for the recommendation service.

Domain records are frozen dataclasses; storage records are Pydantic models.
"""

from .domain import (
    POSITIVE_KINDS,
    PROFILE_KINDS,
    CandidateItem,
    InteractionEvent,
    InteractionKind,
    PreferenceProfile,
    PriceRange,
    RankingRequest,
    ScoredItem,
    TrendingWindow,
    as_utc,
    assign_ranks,
    newest_first_key,
    score_order_key,
)
from .records import InteractionRecord, ItemRecord, ItemsFile, UserInteractionsFile

__all__ = [
    "POSITIVE_KINDS",
    "PROFILE_KINDS",
    "CandidateItem",
    "InteractionEvent",
    "InteractionKind",
    "PreferenceProfile",
    "PriceRange",
    "RankingRequest",
    "ScoredItem",
    "TrendingWindow",
    "as_utc",
    "assign_ranks",
    "newest_first_key",
    "score_order_key",
    "InteractionRecord",
    "ItemRecord",
    "ItemsFile",
    "UserInteractionsFile",
]
