"""
Data models for the recommendations web module.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    key: str
    remaining: int
    retry_after: Optional[float] = None  # Seconds until the oldest request leaves the window

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "retry_after": self.retry_after,
        }


@dataclass
class RecommendationQuery:
    """Validated query parameters shared by the recommendation routes."""
    limit: int
    exclude_ids: frozenset = frozenset()
    window: Optional[str] = None
