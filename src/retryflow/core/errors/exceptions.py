"""
Exception hierarchy for the retry engine.

Two families live here:
- Domain errors (TransientError, PermanentError) that processors raise so
  retry policies can classify them without string matching.
- Engine errors (store, transition, registry, handoff) that describe failures
  of the retry machinery itself. These are never retried by the engine.
"""

from retryflow.core.types import ErrorCategory


class RetryFlowError(Exception):
    """
    Base exception for all retry engine errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Domain Errors (raised by processors)
# =============================================================================


class TransientError(RetryFlowError):
    """Base class for transient/retriable processor errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(RetryFlowError):
    """Base class for permanent/non-retriable processor errors."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Infrastructure Errors
# =============================================================================


class RetryStoreError(RetryFlowError):
    """Retry record store failed (unavailable, I/O error, corrupt data).

    Aborts the current orchestration call and propagates to the caller.
    """

    category = ErrorCategory.TRANSIENT


class RecordNotFoundError(RetryStoreError):
    """No retry record exists for the requested event id."""

    category = ErrorCategory.PERMANENT

    def __init__(self, event_id: str):
        super().__init__(f"No retry record for event '{event_id}'", context={"event_id": event_id})
        self.event_id = event_id


class InvalidStatusTransitionError(RetryFlowError):
    """A status change that the record lifecycle does not allow."""

    category = ErrorCategory.PERMANENT

    def __init__(self, event_id: str, current: str, target: str):
        super().__init__(
            f"Invalid status transition for event '{event_id}': {current} -> {target}",
            context={"event_id": event_id, "current": current, "target": target},
        )
        self.event_id = event_id
        self.current = current
        self.target = target


class AttemptBudgetExhaustedError(RetryFlowError):
    """Recording another attempt would exceed the record's max_attempts."""

    category = ErrorCategory.PERMANENT

    def __init__(self, event_id: str, max_attempts: int):
        super().__init__(
            f"Event '{event_id}' already used all {max_attempts} attempts",
            context={"event_id": event_id, "max_attempts": max_attempts},
        )
        self.event_id = event_id
        self.max_attempts = max_attempts


# =============================================================================
# Configuration Errors
# =============================================================================


class PolicyValidationError(RetryFlowError, ValueError):
    """Retry policy parameters violate their invariants."""

    category = ErrorCategory.PERMANENT


class ProcessorNotRegisteredError(RetryFlowError):
    """No processor is registered for an event type."""

    category = ErrorCategory.PERMANENT

    def __init__(self, event_type: str):
        super().__init__(
            f"No processor registered for event type '{event_type}'",
            context={"event_type": event_type},
        )
        self.event_type = event_type


# =============================================================================
# Dead-Letter Errors
# =============================================================================


class DeadLetterHandoffError(RetryFlowError):
    """The dead-letter sink could not park the event."""

    category = ErrorCategory.TRANSIENT


# =============================================================================
# Error Classification Utilities
# =============================================================================

TRANSIENT_ERROR_MARKERS = frozenset(
    {
        "429",
        "503",
        "502",
        "504",
        "timeout",
        "timed out",
        "connection",
        "throttl",
        "rate limit",
        "temporarily unavailable",
        "service unavailable",
    }
)

PERMANENT_ERROR_MARKERS = frozenset(
    {
        "validation",
        "invalid",
        "malformed",
        "not found",
        "404",
        "403",
        "forbidden",
    }
)


def classify_exception(exc: BaseException) -> ErrorCategory:
    """Classify an exception into an error category."""
    if isinstance(exc, RetryFlowError):
        return exc.category

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    if any(m in exc_type or m in exc_str for m in TRANSIENT_ERROR_MARKERS):
        return ErrorCategory.TRANSIENT

    if any(m in exc_type or m in exc_str for m in PERMANENT_ERROR_MARKERS):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def is_retryable_error(exc: BaseException) -> bool:
    """
    Check if exception should be retried.

    Retryable: transient and unknown errors (conservative retry).
    Non-retryable: permanent errors (validation, missing resources).
    """
    if isinstance(exc, RetryFlowError):
        return exc.is_retryable
    return classify_exception(exc) != ErrorCategory.PERMANENT


def describe_error(exc: BaseException, max_length: int = 500) -> str:
    """Render an exception as '<Type>: <message>', truncated for storage."""
    text = f"{type(exc).__name__}: {exc}"
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text
