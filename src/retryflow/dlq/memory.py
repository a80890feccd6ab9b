"""
In-memory dead-letter queue.

Keeps parked events for inspection and manual reprocessing. Entries are
listed newest first; re-parking an event replaces its entry in place.
"""

import logging
from collections import Counter
from datetime import timedelta

from pydantic import ValidationError

from retryflow.core.clock import Clock, SystemClock
from retryflow.dlq.models import DeadLetterEntry, DeadLetterStatistics
from retryflow.retry.models import RetryEvent

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


class InMemoryDeadLetterQueue:
    """DeadLetterHandoff that keeps entries in process memory."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._entries: dict[str, DeadLetterEntry] = {}
        # Newest first
        self._order: list[str] = []

    def __len__(self) -> int:
        return len(self._entries)

    async def send(self, event: RetryEvent, error: BaseException, attempts: int) -> None:
        entry = DeadLetterEntry(
            event_id=event.event_id,
            event_type=event.event_type,
            aggregate_id=event.aggregate_id,
            originator_id=event.originator_id,
            serialized_event=event.model_dump_json(),
            last_error=str(error),
            error_type=type(error).__name__,
            attempt_count=attempts,
            created_at=self._clock.now(),
            metadata=dict(event.metadata),
        )

        if event.event_id not in self._entries:
            self._order.insert(0, event.event_id)
        self._entries[event.event_id] = entry

        logger.error(
            "Event sent to dead-letter queue",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "attempts": attempts,
                "error_type": entry.error_type,
                "error_message": entry.last_error[:500],
            },
        )

    async def get_entry(self, event_id: str) -> DeadLetterEntry | None:
        entry = self._entries.get(event_id)
        return entry.model_copy(deep=True) if entry is not None else None

    async def get_entries(self, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE) -> list[DeadLetterEntry]:
        ids = self._order[offset : offset + limit]
        return [self._entries[event_id].model_copy(deep=True) for event_id in ids]

    async def get_entries_by_event_type(
        self, event_type: str, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE
    ) -> list[DeadLetterEntry]:
        matches = [self._entries[i] for i in self._order if self._entries[i].event_type == event_type]
        return [e.model_copy(deep=True) for e in matches[offset : offset + limit]]

    async def get_entries_by_error_type(
        self, error_type: str, offset: int = 0, limit: int = DEFAULT_PAGE_SIZE
    ) -> list[DeadLetterEntry]:
        matches = [self._entries[i] for i in self._order if self._entries[i].error_type == error_type]
        return [e.model_copy(deep=True) for e in matches[offset : offset + limit]]

    async def remove_entry(self, event_id: str) -> bool:
        if self._entries.pop(event_id, None) is None:
            return False
        self._order.remove(event_id)
        logger.info("Removed dead-letter entry", extra={"event_id": event_id})
        return True

    async def count(self) -> int:
        return len(self._entries)

    async def clear_old_entries(self, older_than: timedelta = timedelta(days=30)) -> int:
        """Drop entries created before now - older_than. Returns count removed."""
        cutoff = self._clock.now() - older_than
        stale = [event_id for event_id, e in self._entries.items() if e.created_at < cutoff]
        for event_id in stale:
            del self._entries[event_id]
            self._order.remove(event_id)

        if stale:
            logger.info(
                "Cleared old dead-letter entries",
                extra={"cleaned": len(stale), "retention_days": older_than.days},
            )
        return len(stale)

    async def get_statistics(self) -> DeadLetterStatistics:
        entries = list(self._entries.values())
        if not entries:
            return DeadLetterStatistics()

        created = [e.created_at for e in entries]
        return DeadLetterStatistics(
            total_entries=len(entries),
            entries_by_event_type=dict(Counter(e.event_type for e in entries)),
            entries_by_error_type=dict(Counter(e.error_type for e in entries)),
            oldest_entry=min(created),
            newest_entry=max(created),
            average_attempts=sum(e.attempt_count for e in entries) / len(entries),
        )

    async def reprocess_entry(self, event_id: str) -> RetryEvent | None:
        """
        Rebuild a parked event for manual resubmission.

        The entry stays in the queue; remove it once the event is handled.
        """
        entry = self._entries.get(event_id)
        if entry is None:
            logger.warning("Dead-letter entry not found", extra={"event_id": event_id})
            return None
        return self._deserialize(entry)

    async def reprocess_entries_by_event_type(
        self, event_type: str, limit: int = 10
    ) -> list[RetryEvent]:
        events = []
        for entry in await self.get_entries_by_event_type(event_type, 0, limit):
            event = self._deserialize(entry)
            if event is not None:
                events.append(event)
        return events

    def _deserialize(self, entry: DeadLetterEntry) -> RetryEvent | None:
        try:
            return RetryEvent.model_validate_json(entry.serialized_event)
        except ValidationError as e:
            logger.error(
                "Failed to deserialize dead-letter entry",
                extra={"event_id": entry.event_id, "error": str(e)},
            )
            return None


__all__ = ["InMemoryDeadLetterQueue", "DEFAULT_PAGE_SIZE"]
