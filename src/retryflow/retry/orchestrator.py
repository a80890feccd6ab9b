"""
Retry orchestrator.

Drives the attempt loop for one event at a time:

    1. Load (or create) the event's retry record
    2. Count the attempt, then invoke the processor
    3. Success: mark SUCCEEDED (and delete the record)
    4. Failure: capture the error, then either
       - dead-letter it (non-retryable or budget spent), or
       - schedule the next attempt with exponential backoff

In SCHEDULED mode the orchestrator returns as soon as the next attempt is
booked and the RetryReconciler resumes it when due. In BLOCKING mode it
sleeps the backoff delay in-line and keeps going.

Every state change goes through the RetryRecordStore. Store failures are
not retried here; they propagate to the caller as RetryStoreError.
"""

import inspect
import logging
import random
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from retryflow.core.clock import Clock, SystemClock
from retryflow.core.errors import (
    AttemptBudgetExhaustedError,
    ProcessorNotRegisteredError,
    RetryFlowError,
    classify_exception,
    describe_error,
)
from retryflow.core.locks import KeyedLock
from retryflow.core.logging import LogContext
from retryflow.retry.backoff import compute_delay
from retryflow.retry.models import RetryEvent, RetryRecord, RetryResult, RetryStatus
from retryflow.retry.policy import DEFAULT_POLICY, RetryPolicy
from retryflow.retry.registry import Processor, ProcessorRegistry
from retryflow.retry.store import RetryRecordStore

if TYPE_CHECKING:
    from retryflow.dlq.handoff import DeadLetterHandoff

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500
DEFAULT_CLAIM_TIMEOUT = timedelta(minutes=5)


class RetryMode(str, Enum):
    """How the orchestrator waits out a backoff delay."""

    BLOCKING = "blocking"
    SCHEDULED = "scheduled"


class RetryOrchestrator:
    """
    Runs events through a processor under a retry policy.

    Attempts for one event are strictly sequential: a per-event lock covers
    caller submissions and reconciler resumptions alike. Different events
    never wait on each other.

    While an attempt runs, the record's next_retry_at holds a claim lease
    (claim_timeout ahead). If the process dies mid-attempt the record turns
    due again when the lease runs out and the reconciler picks it up.

    Usage:
        >>> orchestrator = RetryOrchestrator(store, dead_letter, registry=registry)
        >>> result = await orchestrator.execute_with_retry(event, process_stock_update)
        >>> if result.scheduled:
        ...     print(f"Next attempt at {result.next_retry_at}")
    """

    def __init__(
        self,
        store: RetryRecordStore,
        dead_letter: "DeadLetterHandoff",
        *,
        registry: ProcessorRegistry | None = None,
        clock: Clock | None = None,
        mode: RetryMode | str = RetryMode.SCHEDULED,
        default_policy: RetryPolicy = DEFAULT_POLICY,
        delete_on_success: bool = True,
        claim_timeout: timedelta = DEFAULT_CLAIM_TIMEOUT,
        rng: random.Random | None = None,
    ):
        if claim_timeout <= timedelta(0):
            raise ValueError("claim_timeout must be positive")

        self._store = store
        self._dead_letter = dead_letter
        self._registry = registry if registry is not None else ProcessorRegistry()
        self._clock = clock or SystemClock()
        self._mode = RetryMode(mode)
        self._default_policy = default_policy
        self._delete_on_success = delete_on_success
        self._claim_timeout = claim_timeout
        self._rng = rng
        self._locks = KeyedLock()

    @property
    def mode(self) -> RetryMode:
        return self._mode

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry

    @property
    def store(self) -> RetryRecordStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    def is_in_flight(self, event_id: str) -> bool:
        return self._locks.is_held(event_id)

    async def execute_with_retry(
        self,
        event: RetryEvent,
        processor: Processor | None = None,
        policy: RetryPolicy | None = None,
    ) -> RetryResult:
        """
        Process an event with retries.

        Missing processor/policy are taken from the registration for the
        event's type. Resubmitting a known event_id continues its existing
        record; attempt counts are never reset.

        Raises:
            ProcessorNotRegisteredError: no processor given and none registered
            RetryStoreError: the record store failed
        """
        registration = self._registry.get(event.event_type)
        if processor is None:
            if registration is None:
                raise ProcessorNotRegisteredError(event.event_type)
            processor = registration.processor
        if policy is None:
            policy = (registration.policy if registration else None) or self._default_policy

        with LogContext(event_id=event.event_id, event_type=event.event_type):
            async with self._locks.hold(event.event_id):
                return await self._submit(event, processor, policy)

    async def resume(self, event_id: str) -> RetryResult | None:
        """
        Resume a due record with its registered processor.

        Returns None when the record is not claimable: missing, not due,
        already claimed by another sweep, or in flight right now.
        """
        if self._locks.is_held(event_id):
            logger.debug("Event in flight, skipping resume", extra={"event_id": event_id})
            return None

        with LogContext(event_id=event_id):
            async with self._locks.hold(event_id):
                started = self._clock.now()
                record = await self._store.claim_due(
                    event_id, started, started + self._claim_timeout
                )
                if record is None:
                    return None

                with LogContext(event_type=record.event_type):
                    try:
                        return await self._resume_claimed(record, started)
                    except Exception:
                        await self._release_claim(event_id)
                        raise

    async def _resume_claimed(self, record: RetryRecord, started: datetime) -> RetryResult:
        event_id = record.event_id
        registration = self._registry.get(record.event_type)
        if registration is None:
            error = ProcessorNotRegisteredError(record.event_type)
            logger.error(
                "No processor registered for due event, dead-lettering",
                extra={"event_id": event_id, "event_type": record.event_type},
            )
            record = await self._store.record_error(event_id, describe_error(error))
            event = RetryEvent.from_record(record)
            return await self._finalize_failure(event, record, error, started)

        event = registration.event_factory(record)
        policy = registration.policy or self._default_policy
        logger.info(
            "Resuming retry",
            extra={
                "event_id": event_id,
                "event_type": record.event_type,
                "attempts": record.attempts,
                "max_attempts": record.max_attempts,
            },
        )
        return await self._run(event, record, registration.processor, policy, started)

    async def _release_claim(self, event_id: str) -> None:
        """Make a claimed record due again after a failed resumption."""
        try:
            record = await self._store.find_by_event_id(event_id)
            if record is not None and record.status == RetryStatus.RETRYING:
                await self._store.update_status(
                    event_id, RetryStatus.RETRYING, next_retry_at=self._clock.now()
                )
        except RetryFlowError as e:
            # The lease still expires on its own
            logger.warning(
                "Could not release retry claim",
                extra={"event_id": event_id, "error": str(e)},
            )

    # ------------------------------------------------------------------
    # Attempt loop
    # ------------------------------------------------------------------

    async def _submit(
        self, event: RetryEvent, processor: Processor, policy: RetryPolicy
    ) -> RetryResult:
        started = self._clock.now()
        record = await self._store.find_by_event_id(event.event_id)

        if record is None:
            record = RetryRecord.for_event(event, policy.max_attempts, started)
            await self._store.save(record)
            logger.debug(
                "Created retry record",
                extra={"event_id": event.event_id, "max_attempts": record.max_attempts},
            )
            return await self._run(event, record, processor, policy, started)

        if record.is_terminal:
            logger.info(
                "Event already finished, not reprocessing",
                extra={
                    "event_id": event.event_id,
                    "status": record.status.value,
                    "attempts": record.attempts,
                },
            )
            return RetryResult(
                success=False,
                attempts=record.attempts,
                total_time=0.0,
                status=record.status,
            )

        if record.next_retry_at is not None:
            remaining = (record.next_retry_at - started).total_seconds()
            if remaining > 0:
                if self._can_schedule(event.event_type):
                    logger.debug(
                        "Retry already scheduled",
                        extra={
                            "event_id": event.event_id,
                            "next_retry_at": record.next_retry_at.isoformat(),
                        },
                    )
                    return RetryResult(
                        success=False,
                        attempts=record.attempts,
                        total_time=0.0,
                        status=record.status,
                        next_retry_at=record.next_retry_at,
                    )
                await self._clock.sleep(remaining)

        logger.info(
            "Continuing existing retry record",
            extra={
                "event_id": event.event_id,
                "attempts": record.attempts,
                "max_attempts": record.max_attempts,
            },
        )
        return await self._run(event, record, processor, policy, started)

    async def _run(
        self,
        event: RetryEvent,
        record: RetryRecord,
        processor: Processor,
        policy: RetryPolicy,
        started: datetime,
    ) -> RetryResult:
        event_id = event.event_id

        while True:
            if record.attempts >= record.max_attempts:
                # Budget spent before the last failure was finalized
                error = AttemptBudgetExhaustedError(event_id, record.max_attempts)
                return await self._finalize_failure(event, record, error, started)

            # Lease the record for this attempt
            record = await self._store.update_status(
                event_id,
                RetryStatus.RETRYING,
                next_retry_at=self._clock.now() + self._claim_timeout,
            )
            record = await self._store.increment_attempts(event_id)
            attempt = record.attempts

            logger.debug(
                "Processing attempt",
                extra={
                    "event_id": event_id,
                    "attempt": attempt,
                    "max_attempts": record.max_attempts,
                },
            )

            try:
                result = await self._invoke(processor, event)
            except Exception as e:
                error = e
            else:
                return await self._finalize_success(event, record, result, started)

            record = await self._store.record_error(
                event_id, describe_error(error, MAX_ERROR_LENGTH)
            )

            if not policy.is_retryable(error):
                logger.warning(
                    "Non-retryable error, dead-lettering",
                    extra={
                        "event_id": event_id,
                        "attempt": attempt,
                        "error_type": type(error).__name__,
                        "error_category": classify_exception(error).value,
                        "error_message": str(error)[:MAX_ERROR_LENGTH],
                    },
                )
                return await self._finalize_failure(event, record, error, started)

            if record.attempts >= record.max_attempts:
                logger.warning(
                    "Retry budget exhausted, dead-lettering",
                    extra={
                        "event_id": event_id,
                        "attempt": attempt,
                        "max_attempts": record.max_attempts,
                        "error_type": type(error).__name__,
                        "error_message": str(error)[:MAX_ERROR_LENGTH],
                    },
                )
                return await self._finalize_failure(event, record, error, started)

            delay = compute_delay(attempt, policy, self._rng)
            next_retry_at = self._clock.now() + timedelta(seconds=delay)
            record = await self._store.update_status(
                event_id, RetryStatus.RETRYING, next_retry_at=next_retry_at
            )

            logger.info(
                "Attempt failed, retry scheduled",
                extra={
                    "event_id": event_id,
                    "attempt": attempt,
                    "max_attempts": record.max_attempts,
                    "delay_seconds": round(delay, 3),
                    "next_retry_at": next_retry_at.isoformat(),
                    "error_type": type(error).__name__,
                },
            )

            if self._can_schedule(event.event_type):
                return RetryResult(
                    success=False,
                    attempts=attempt,
                    total_time=self._elapsed(started),
                    status=RetryStatus.RETRYING,
                    error=error,
                    next_retry_at=next_retry_at,
                )

            await self._clock.sleep(delay)

    async def _invoke(self, processor: Processor, event: RetryEvent) -> Any:
        result = processor(event)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _can_schedule(self, event_type: str) -> bool:
        if self._mode != RetryMode.SCHEDULED:
            return False
        if event_type in self._registry:
            return True
        logger.warning(
            "Event type not registered, waiting in-line instead of scheduling",
            extra={"event_type": event_type},
        )
        return False

    def _elapsed(self, started: datetime) -> float:
        return max(0.0, (self._clock.now() - started).total_seconds())

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def _finalize_success(
        self, event: RetryEvent, record: RetryRecord, result: Any, started: datetime
    ) -> RetryResult:
        await self._store.update_status(event.event_id, RetryStatus.SUCCEEDED)
        if self._delete_on_success:
            await self._store.delete(event.event_id)

        total_time = self._elapsed(started)
        logger.info(
            "Event processed successfully",
            extra={
                "event_id": event.event_id,
                "attempts": record.attempts,
                "total_time_seconds": round(total_time, 3),
            },
        )
        return RetryResult(
            success=True,
            attempts=record.attempts,
            total_time=total_time,
            status=RetryStatus.SUCCEEDED,
            result=result,
        )

    async def _finalize_failure(
        self,
        event: RetryEvent,
        record: RetryRecord,
        error: BaseException,
        started: datetime,
    ) -> RetryResult:
        """Hand the event to the dead-letter sink; FAILED if that fails too."""
        try:
            await self._dead_letter.send(event, error, record.attempts)
        except Exception as handoff_error:
            status = RetryStatus.FAILED
            logger.error(
                "Dead-letter handoff failed, event marked FAILED",
                extra={
                    "event_id": event.event_id,
                    "attempts": record.attempts,
                    "error_type": type(error).__name__,
                    "error": describe_error(handoff_error, MAX_ERROR_LENGTH),
                },
                exc_info=True,
            )
        else:
            status = RetryStatus.DEAD_LETTER
            logger.warning(
                "Event dead-lettered",
                extra={
                    "event_id": event.event_id,
                    "attempts": record.attempts,
                    "error_type": type(error).__name__,
                },
            )

        await self._store.update_status(event.event_id, status)
        return RetryResult(
            success=False,
            attempts=record.attempts,
            total_time=self._elapsed(started),
            status=status,
            error=error,
        )


__all__ = ["RetryMode", "RetryOrchestrator", "MAX_ERROR_LENGTH", "DEFAULT_CLAIM_TIMEOUT"]
