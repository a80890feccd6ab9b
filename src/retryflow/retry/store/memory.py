"""Dict-backed retry record store."""

from retryflow.core.clock import Clock
from retryflow.retry.models import RetryRecord
from retryflow.retry.store.base import RetryRecordStore


class InMemoryRetryRecordStore(RetryRecordStore):
    """Volatile store for tests and single-process deployments.

    Records are lost on restart; use JsonFileRetryRecordStore when in-flight
    retries must survive one.
    """

    def __init__(self, clock: Clock | None = None):
        super().__init__(clock)
        self._records: dict[str, RetryRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def _read(self, event_id: str) -> RetryRecord | None:
        return self._records.get(event_id)

    async def _write(self, record: RetryRecord) -> None:
        self._records[record.event_id] = record

    async def _remove(self, event_id: str) -> bool:
        return self._records.pop(event_id, None) is not None

    async def _read_all(self) -> list[RetryRecord]:
        return list(self._records.values())


__all__ = ["InMemoryRetryRecordStore"]
