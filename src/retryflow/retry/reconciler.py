"""
Background reconciler for scheduled retries.

Periodically sweeps the record store for RETRYING records whose
next_retry_at has passed and resumes them through the orchestrator, so no
caller has to stay blocked for a backoff window and retries survive the
submitting caller going away.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import Any

from retryflow.retry.models import RetryRecord, RetryResult
from retryflow.retry.orchestrator import RetryOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_RETENTION = timedelta(days=30)


class RetryReconciler:
    """
    Sweeps due retry records on a fixed interval and resumes them.

    Double processing is prevented twice over: the orchestrator skips
    events already in flight in this process, and resumption starts with
    store.claim_due(), which only one sweep can win.

    Stopping is cooperative. No new sweep starts after stop(); a sweep
    already running finishes its resumptions first.

    Usage:
        >>> reconciler = RetryReconciler(orchestrator, sweep_interval=5.0)
        >>> reconciler.start()
        >>> ...
        >>> await reconciler.stop()
    """

    def __init__(
        self,
        orchestrator: RetryOrchestrator,
        *,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retention: timedelta = DEFAULT_RETENTION,
        cleanup_interval: float | None = None,
    ):
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self._orchestrator = orchestrator
        self._sweep_interval = sweep_interval
        self._max_concurrency = max_concurrency
        self._retention = retention
        self._cleanup_interval = cleanup_interval

        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._running = False
        self._last_cleanup: datetime | None = None

        # Counters
        self._sweeps = 0
        self._resumed = 0
        self._skipped = 0
        self._sweep_errors = 0
        self._cleaned = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "sweeps": self._sweeps,
            "resumed": self._resumed,
            "skipped": self._skipped,
            "sweep_errors": self._sweep_errors,
            "cleaned": self._cleaned,
        }

    def start(self) -> None:
        """Start the sweep loop as a background task."""
        if self._task is not None:
            logger.warning("Reconciler already running, ignoring duplicate start call")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())

        logger.info(
            "Retry reconciler started",
            extra={
                "sweep_interval": self._sweep_interval,
                "max_concurrency": self._max_concurrency,
            },
        )

    async def stop(self) -> None:
        """Stop sweeping. Idempotent; waits for an in-progress sweep."""
        if self._task is None:
            logger.debug("Reconciler not running or already stopped")
            return

        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()

        task, self._task = self._task, None
        with contextlib.suppress(asyncio.CancelledError):
            await task

        logger.info("Retry reconciler stopped", extra=self.stats)

    async def _run(self) -> None:
        while self._running:
            try:
                await self.sweep()
            except Exception:
                self._sweep_errors += 1
                logger.error("Retry sweep failed", exc_info=True)

            if not self._running:
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._sweep_interval)

    async def sweep(self) -> int:
        """
        Run one sweep: resume every due record, then housekeeping.

        Returns:
            Number of records actually resumed
        """
        store = self._orchestrator.store
        now = self._orchestrator.clock.now()
        due = await store.find_due(now)
        self._sweeps += 1

        resumed = 0
        skipped = 0
        errors = 0
        if due:
            logger.debug("Found due retries", extra={"due_count": len(due)})
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def resume_one(record: RetryRecord) -> RetryResult | None:
                async with semaphore:
                    return await self._orchestrator.resume(record.event_id)

            results = await asyncio.gather(
                *(resume_one(record) for record in due), return_exceptions=True
            )

            for record, result in zip(due, results):
                if isinstance(result, Exception):
                    errors += 1
                    logger.error(
                        "Failed to resume retry",
                        extra={
                            "event_id": record.event_id,
                            "event_type": record.event_type,
                            "error_type": type(result).__name__,
                            "error": str(result),
                        },
                        exc_info=result,
                    )
                elif isinstance(result, BaseException):
                    raise result
                elif result is None:
                    skipped += 1
                else:
                    resumed += 1

            self._resumed += resumed
            self._skipped += skipped
            self._sweep_errors += errors
            logger.info(
                "Retry sweep complete",
                extra={
                    "due_count": len(due),
                    "resumed": resumed,
                    "skipped": skipped,
                    "sweep_errors": errors,
                },
            )

        await self._maybe_cleanup(now)
        return resumed

    async def _maybe_cleanup(self, now: datetime) -> None:
        if self._cleanup_interval is None:
            return
        if (
            self._last_cleanup is not None
            and (now - self._last_cleanup).total_seconds() < self._cleanup_interval
        ):
            return

        self._last_cleanup = now
        removed = await self._orchestrator.store.cleanup(self._retention)
        self._cleaned += removed
        if removed:
            logger.info(
                "Cleaned up old retry records",
                extra={"cleaned": removed, "retention_days": self._retention.days},
            )


__all__ = [
    "RetryReconciler",
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_RETENTION",
]
