"""
Retry engine data model.

RetryEvent is what callers submit; RetryRecord is the durable bookkeeping the
engine keeps for it (one per event_id); RetryResult is what a call returns.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class RetryStatus(str, Enum):
    """Lifecycle of a retry record.

    PENDING -> RETRYING -> SUCCEEDED | DEAD_LETTER | FAILED
    RETRYING -> RETRYING while attempts remain.
    """

    PENDING = "PENDING"
    RETRYING = "RETRYING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    DEAD_LETTER = "DEAD_LETTER"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "RetryStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


TERMINAL_STATUSES = frozenset({RetryStatus.SUCCEEDED, RetryStatus.FAILED, RetryStatus.DEAD_LETTER})

_ALLOWED_TRANSITIONS: dict[RetryStatus, frozenset[RetryStatus]] = {
    RetryStatus.PENDING: frozenset({RetryStatus.RETRYING}),
    RetryStatus.RETRYING: frozenset(
        {
            RetryStatus.RETRYING,
            RetryStatus.SUCCEEDED,
            RetryStatus.DEAD_LETTER,
            RetryStatus.FAILED,
        }
    ),
    RetryStatus.SUCCEEDED: frozenset(),
    RetryStatus.FAILED: frozenset(),
    RetryStatus.DEAD_LETTER: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class RetryEvent(BaseModel):
    """An event submitted for retry-protected processing.

    Attributes:
        event_id: Unique identity; one retry record exists per event_id
        event_type: Routing key for processor registration
        aggregate_id: Entity the event belongs to
        originator_id: User or system that produced the event
        occurred_at: When the event was produced
        metadata: Caller-supplied context, copied onto the retry record

    Example:
        >>> event = RetryEvent(
        ...     event_id="evt-1",
        ...     event_type="StockUpdated",
        ...     aggregate_id="product-42",
        ...     originator_id="user-7",
        ...     metadata={"quantity": 3},
        ... )
    """

    event_id: str = Field(..., min_length=1, description="Unique event identifier")
    event_type: str = Field(..., min_length=1, description="Event type used for processor lookup")
    aggregate_id: str = Field(default="", description="Aggregate the event belongs to")
    originator_id: str = Field(default="", description="User or system that produced the event")
    occurred_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_id", "event_type")
    @classmethod
    def validate_non_empty_strings(cls, v: str, info) -> str:
        """Ensure identity fields are not empty or whitespace-only."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty or whitespace")
        return v.strip()

    @field_validator("occurred_at")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        return _ensure_utc(v)

    @classmethod
    def from_record(cls, record: "RetryRecord") -> "RetryEvent":
        """Rebuild an event from its retry record (used on resumption)."""
        return cls(
            event_id=record.event_id,
            event_type=record.event_type,
            aggregate_id=record.aggregate_id,
            originator_id=record.originator_id,
            occurred_at=record.first_attempt_at,
            metadata=dict(record.metadata),
        )


class RetryRecord(BaseModel):
    """Durable bookkeeping for one event's retry flow."""

    event_id: str
    event_type: str
    aggregate_id: str = ""
    originator_id: str = ""
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(..., ge=1)
    first_attempt_at: datetime
    last_attempt_at: datetime
    next_retry_at: datetime | None = None
    last_error: str | None = None
    status: RetryStatus = RetryStatus.PENDING
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("first_attempt_at", "last_attempt_at", "next_retry_at")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        return _ensure_utc(v)

    @model_validator(mode="after")
    def validate_attempt_budget(self) -> "RetryRecord":
        if self.attempts > self.max_attempts:
            raise ValueError(
                f"attempts ({self.attempts}) cannot exceed max_attempts ({self.max_attempts})"
            )
        return self

    @classmethod
    def for_event(cls, event: RetryEvent, max_attempts: int, now: datetime) -> "RetryRecord":
        return cls(
            event_id=event.event_id,
            event_type=event.event_type,
            aggregate_id=event.aggregate_id,
            originator_id=event.originator_id,
            max_attempts=max_attempts,
            first_attempt_at=now,
            last_attempt_at=now,
            metadata=dict(event.metadata),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.attempts

    def is_due(self, now: datetime) -> bool:
        return (
            self.status == RetryStatus.RETRYING
            and self.next_retry_at is not None
            and self.next_retry_at <= now
        )


@dataclass
class RetryResult:
    """Outcome of an orchestration call.

    `scheduled` results are returned in scheduled mode when a retry was
    booked for the reconciler; they are neither a success nor a final failure.
    """

    success: bool
    attempts: int
    total_time: float
    status: RetryStatus
    result: Any = None
    error: BaseException | None = None
    next_retry_at: datetime | None = None

    @property
    def scheduled(self) -> bool:
        return self.next_retry_at is not None

    @property
    def final(self) -> bool:
        return self.status.is_terminal


class EventTypeStatistics(BaseModel):
    """Per-event-type rollup."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    dead_lettered: int = 0
    average_attempts: float = 0.0


class RetryStatistics(BaseModel):
    """Aggregate view over the retry record store."""

    total_retries: int = 0
    successful_retries: int = 0
    failed_retries: int = 0
    dead_letter_events: int = 0
    in_progress: int = 0
    average_retry_count: float = 0.0
    retry_rate_by_event_type: dict[str, EventTypeStatistics] = Field(default_factory=dict)


__all__ = [
    "RetryStatus",
    "TERMINAL_STATUSES",
    "RetryEvent",
    "RetryRecord",
    "RetryResult",
    "RetryStatistics",
    "EventTypeStatistics",
]
