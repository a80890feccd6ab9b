"""Dead-letter queue entry and statistics schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class DeadLetterEntry(BaseModel):
    """A parked event plus the failure that put it there."""

    event_id: str = Field(..., description="Identifier of the failed event")
    event_type: str = Field(..., description="Event type of the failed event")
    aggregate_id: str = ""
    originator_id: str = ""
    serialized_event: str = Field(..., description="Full event as JSON, for reprocessing")
    last_error: str = Field(..., description="Message of the final error")
    error_type: str = Field(..., description="Exception class name of the final error")
    attempt_count: int = Field(..., ge=0)
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class DeadLetterStatistics(BaseModel):
    total_entries: int = 0
    entries_by_event_type: dict[str, int] = Field(default_factory=dict)
    entries_by_error_type: dict[str, int] = Field(default_factory=dict)
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    average_attempts: float = 0.0


__all__ = ["DeadLetterEntry", "DeadLetterStatistics"]
