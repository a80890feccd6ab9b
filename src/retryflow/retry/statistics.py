"""
Read-only statistics over retry records.

Computed on demand from whatever the store currently holds, so the numbers
are exact but bounded by retention: cleaned-up records (and succeeded
records deleted on success) are no longer counted.
"""

from collections import defaultdict
from collections.abc import Iterable

from retryflow.retry.models import (
    EventTypeStatistics,
    RetryRecord,
    RetryStatistics,
    RetryStatus,
)


def _average_attempts(records: list[RetryRecord]) -> float:
    completed = [r for r in records if r.is_terminal]
    if not completed:
        return 0.0
    return sum(r.attempts for r in completed) / len(completed)


def _count(records: list[RetryRecord], status: RetryStatus) -> int:
    return sum(1 for r in records if r.status == status)


def compute_statistics(records: Iterable[RetryRecord]) -> RetryStatistics:
    """
    Roll up retry records into totals and a per-event-type breakdown.

    Average attempts only consider completed (terminal) records; in-flight
    records would drag the average down while they are still progressing.
    """
    records = list(records)

    by_type: dict[str, list[RetryRecord]] = defaultdict(list)
    for record in records:
        by_type[record.event_type].append(record)

    return RetryStatistics(
        total_retries=len(records),
        successful_retries=_count(records, RetryStatus.SUCCEEDED),
        failed_retries=_count(records, RetryStatus.FAILED),
        dead_letter_events=_count(records, RetryStatus.DEAD_LETTER),
        in_progress=sum(1 for r in records if not r.is_terminal),
        average_retry_count=_average_attempts(records),
        retry_rate_by_event_type={
            event_type: EventTypeStatistics(
                total=len(type_records),
                successful=_count(type_records, RetryStatus.SUCCEEDED),
                failed=_count(type_records, RetryStatus.FAILED),
                dead_lettered=_count(type_records, RetryStatus.DEAD_LETTER),
                average_attempts=_average_attempts(type_records),
            )
            for event_type, type_records in sorted(by_type.items())
        },
    )


__all__ = ["compute_statistics"]
