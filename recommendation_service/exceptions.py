"""
Exception hierarchy for the recommendation service.

Expected degraded states (no history, no neighbors, empty trending window)
are not exceptions; they are reported as empty source outcomes.
"""

from typing import Any, Dict, Optional


class RecommendationError(Exception):
    """Base exception for all recommendation errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RepositoryError(RecommendationError):
    """Raised by repository adapters when the backing store cannot be read."""

    def __init__(self, operation: str, reason: str, details: Optional[Dict[str, Any]] = None):
        message = f"Repository call '{operation}' failed: {reason}"
        super().__init__(message, details)
        self.operation = operation
        self.reason = reason


class RepositoryUnavailable(RecommendationError):
    """Raised once when even the popularity fallback cannot obtain items."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Recommendation store unavailable: {reason}", details)
        self.reason = reason


class RequestCancelled(RecommendationError):
    """Raised when the caller cancels an in-flight recommendation request."""

    def __init__(self, operation: Optional[str] = None):
        message = "Recommendation request cancelled"
        if operation:
            message = f"{message} during '{operation}'"
        super().__init__(message)
        self.operation = operation
