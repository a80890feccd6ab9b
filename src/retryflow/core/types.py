"""
Core types shared across the retry engine.

Kept free of imports from the rest of the package so errors, models and
policies can all depend on it without import cycles.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for retry decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., network timeouts, 429/503 responses)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., validation errors, missing resources)
        UNKNOWN: Unclassified errors, retried conservatively
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = ["ErrorCategory"]
