"""
Retry record store contract.

The store is the only shared mutable state in the engine. Callers submitting
new events, the reconciler sweeping due records and in-flight orchestration
all go through it, so every mutating operation holds a per-event lock.
There is no cross-key locking.

Concrete stores implement five storage primitives (_read, _write, _remove,
_read_all, _flush); the lifecycle rules live here so every backend enforces
them identically.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from retryflow.core.clock import Clock, SystemClock
from retryflow.core.errors import (
    AttemptBudgetExhaustedError,
    InvalidStatusTransitionError,
    RecordNotFoundError,
)
from retryflow.core.locks import KeyedLock
from retryflow.retry.models import RetryRecord, RetryStatistics, RetryStatus
from retryflow.retry.statistics import compute_statistics


class RetryRecordStore(ABC):
    """Keyed storage for one RetryRecord per event_id.

    Records handed out are copies; mutating them has no effect until save().
    Storage failures surface as RetryStoreError and leave the stored state
    as it was before the failed call.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self._locks = KeyedLock()

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _read(self, event_id: str) -> RetryRecord | None:
        """Return the stored record (may be the live object)."""

    @abstractmethod
    async def _write(self, record: RetryRecord) -> None:
        """Insert or replace a record."""

    @abstractmethod
    async def _remove(self, event_id: str) -> bool:
        """Remove a record. Returns True if it existed."""

    @abstractmethod
    async def _read_all(self) -> list[RetryRecord]:
        """Return every stored record."""

    async def _flush(self) -> None:
        """Make preceding writes durable. No-op for volatile stores."""

    async def _require(self, event_id: str) -> RetryRecord:
        """Return a private copy of the stored record for mutation."""
        record = await self._read(event_id)
        if record is None:
            raise RecordNotFoundError(event_id)
        return record.model_copy(deep=True)

    async def _commit(self, record: RetryRecord) -> None:
        """Write and flush; on a failed flush the previous record is put back."""
        previous = await self._read(record.event_id)
        await self._write(record)
        try:
            await self._flush()
        except Exception:
            if previous is None:
                await self._remove(record.event_id)
            else:
                await self._write(previous)
            raise

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def save(self, record: RetryRecord) -> None:
        async with self._locks.hold(record.event_id):
            await self._commit(record.model_copy(deep=True))

    async def find_by_event_id(self, event_id: str) -> RetryRecord | None:
        record = await self._read(event_id)
        return record.model_copy(deep=True) if record is not None else None

    async def delete(self, event_id: str) -> bool:
        async with self._locks.hold(event_id):
            previous = await self._read(event_id)
            if previous is None:
                return False
            await self._remove(event_id)
            try:
                await self._flush()
            except Exception:
                await self._write(previous)
                raise
        return True

    async def find_due(self, now: datetime) -> list[RetryRecord]:
        """All RETRYING records whose next_retry_at <= now, earliest first."""
        due = [r for r in await self._read_all() if r.is_due(now)]
        due.sort(key=lambda r: r.next_retry_at)
        return [r.model_copy(deep=True) for r in due]

    async def list_records(self, status: RetryStatus | None = None) -> list[RetryRecord]:
        records = await self._read_all()
        if status is not None:
            records = [r for r in records if r.status == status]
        return [r.model_copy(deep=True) for r in records]

    async def increment_attempts(self, event_id: str, error: str | None = None) -> RetryRecord:
        """Count one more attempt, optionally capturing its error, atomically."""
        async with self._locks.hold(event_id):
            record = await self._require(event_id)
            if record.attempts >= record.max_attempts:
                raise AttemptBudgetExhaustedError(event_id, record.max_attempts)

            record.attempts += 1
            record.last_attempt_at = max(self._clock.now(), record.last_attempt_at)
            if error is not None:
                record.last_error = error

            await self._commit(record)
            return record.model_copy(deep=True)

    async def record_error(self, event_id: str, error: str) -> RetryRecord:
        """Overwrite last_error without counting an attempt."""
        async with self._locks.hold(event_id):
            record = await self._require(event_id)
            record.last_error = error
            await self._commit(record)
            return record.model_copy(deep=True)

    async def update_status(
        self,
        event_id: str,
        status: RetryStatus,
        next_retry_at: datetime | None = None,
    ) -> RetryRecord:
        """
        Move a record to a new status.

        next_retry_at is only kept for RETRYING; every other status clears it.

        Raises:
            RecordNotFoundError: no record for event_id
            InvalidStatusTransitionError: lifecycle forbids the change
        """
        async with self._locks.hold(event_id):
            record = await self._require(event_id)
            if not record.status.can_transition_to(status):
                raise InvalidStatusTransitionError(event_id, record.status.value, status.value)

            record.status = status
            record.next_retry_at = next_retry_at if status == RetryStatus.RETRYING else None

            await self._commit(record)
            return record.model_copy(deep=True)

    async def claim_due(
        self, event_id: str, now: datetime, lease_until: datetime
    ) -> RetryRecord | None:
        """
        Claim a due record for resumption.

        Pushes next_retry_at out to lease_until, so the record drops out of
        find_due() and a second claimant (an interleaved sweep) gets None.
        If the claimant dies without finishing, the record becomes due again
        once the lease expires.
        """
        async with self._locks.hold(event_id):
            current = await self._read(event_id)
            if current is None or not current.is_due(now):
                return None

            record = current.model_copy(deep=True)
            record.next_retry_at = lease_until
            await self._commit(record)
            return record.model_copy(deep=True)

    async def cleanup(self, older_than: timedelta) -> int:
        """Delete terminal records whose last attempt is older than the cutoff."""
        cutoff = self._clock.now() - older_than
        removed: list[RetryRecord] = []

        for candidate in await self._read_all():
            if not candidate.is_terminal or candidate.last_attempt_at >= cutoff:
                continue
            async with self._locks.hold(candidate.event_id):
                # Re-check under the lock; the record may have changed
                record = await self._read(candidate.event_id)
                if record is not None and record.is_terminal and record.last_attempt_at < cutoff:
                    if await self._remove(record.event_id):
                        removed.append(record)

        if removed:
            try:
                await self._flush()
            except Exception:
                for record in removed:
                    await self._write(record)
                raise
        return len(removed)

    async def get_statistics(self) -> RetryStatistics:
        return compute_statistics(await self._read_all())

    async def count(self) -> int:
        return len(await self._read_all())


__all__ = ["RetryRecordStore"]
