"""
Retry policy configuration.

A RetryPolicy is immutable and passed per call (or per registered event
type). It bounds the attempt budget, shapes the backoff curve and decides
which processor errors are worth another attempt.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from retryflow.core.errors import PolicyValidationError, RetryFlowError

DEFAULT_NON_RETRYABLE_ERRORS = frozenset({"ValidationError", "AuthenticationError"})


def _error_names(error: BaseException) -> set[str]:
    """Class names of the error and its bases, so subclasses match too."""
    return {cls.__name__ for cls in type(error).__mro__}


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget, backoff shape and error classification."""

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    jitter_fraction: float = 0.1

    # Exception class names that always go straight to the dead-letter sink
    non_retryable_errors: frozenset[str] = DEFAULT_NON_RETRYABLE_ERRORS

    # If non-empty, only these exception class names are retried
    retryable_errors: frozenset[str] = frozenset()

    # Optional custom predicate, consulted after the name lists
    classifier: Callable[[BaseException], bool] | None = field(default=None, compare=False)

    def __post_init__(self):
        """Coerce YAML/env strings and enforce invariants."""
        try:
            object.__setattr__(self, "max_attempts", int(self.max_attempts))
            object.__setattr__(self, "base_delay", float(self.base_delay))
            object.__setattr__(self, "multiplier", float(self.multiplier))
            object.__setattr__(self, "max_delay", float(self.max_delay))
            object.__setattr__(self, "jitter_fraction", float(self.jitter_fraction or 0.0))
        except (TypeError, ValueError) as e:
            raise PolicyValidationError(f"Invalid retry policy value: {e}", cause=e) from e

        object.__setattr__(self, "non_retryable_errors", frozenset(self.non_retryable_errors))
        object.__setattr__(self, "retryable_errors", frozenset(self.retryable_errors))

        if self.max_attempts < 1:
            raise PolicyValidationError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise PolicyValidationError("base_delay must be non-negative")
        if self.multiplier < 1:
            raise PolicyValidationError("multiplier must be at least 1")
        if self.max_delay < self.base_delay:
            raise PolicyValidationError("max_delay must be greater than or equal to base_delay")
        if not 0 <= self.jitter_fraction <= 1:
            raise PolicyValidationError("jitter_fraction must be between 0 and 1")

    def is_retryable(self, error: BaseException) -> bool:
        """
        Decide whether a processor error deserves another attempt.

        Order: non_retryable_errors, retryable_errors (when set), classifier,
        RetryFlowError category. Anything else is retried.
        """
        names = _error_names(error)

        if names & self.non_retryable_errors:
            return False

        if self.retryable_errors:
            return bool(names & self.retryable_errors)

        if self.classifier is not None:
            return bool(self.classifier(error))

        if isinstance(error, RetryFlowError):
            return error.is_retryable

        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RetryPolicy":
        """Build a policy from a config mapping, ignoring unknown keys."""
        data = dict(data or {})
        kwargs: dict[str, Any] = {}
        for key in ("max_attempts", "base_delay", "multiplier", "max_delay", "jitter_fraction"):
            if data.get(key) is not None:
                kwargs[key] = data[key]
        for key in ("non_retryable_errors", "retryable_errors"):
            if data.get(key) is not None:
                kwargs[key] = _as_names(data[key])
        return cls(**kwargs)


def _as_names(value: str | Iterable[str]) -> frozenset[str]:
    if isinstance(value, str):
        return frozenset(name.strip() for name in value.split(",") if name.strip())
    return frozenset(value)


# Predefined policies
DEFAULT_POLICY = RetryPolicy()
CRITICAL_POLICY = RetryPolicy(
    max_attempts=5,
    base_delay=0.5,
    multiplier=1.5,
    max_delay=60.0,
    jitter_fraction=0.25,
    retryable_errors=frozenset({"TimeoutError", "ConnectionError", "TransientError"}),
)
CONSERVATIVE_POLICY = RetryPolicy(max_attempts=2, base_delay=2.0, max_delay=10.0, jitter_fraction=0.0)
REAL_TIME_POLICY = RetryPolicy(max_attempts=3, base_delay=0.1, max_delay=1.0, jitter_fraction=0.25)
NO_RETRY_POLICY = RetryPolicy(max_attempts=1, base_delay=0.0, multiplier=1.0, max_delay=0.0, jitter_fraction=0.0)


__all__ = [
    "RetryPolicy",
    "DEFAULT_POLICY",
    "CRITICAL_POLICY",
    "CONSERVATIVE_POLICY",
    "REAL_TIME_POLICY",
    "NO_RETRY_POLICY",
    "DEFAULT_NON_RETRYABLE_ERRORS",
]
