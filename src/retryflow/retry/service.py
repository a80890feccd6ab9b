"""
Event retry service: the composition root of the retry engine.

Wires one store, one dead-letter sink, a processor registry, the
orchestrator and the background reconciler, and exposes the operations
callers and operators use.
"""

import logging
import random
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from retryflow.core.clock import Clock
from retryflow.dlq.handoff import DeadLetterHandoff
from retryflow.dlq.memory import InMemoryDeadLetterQueue
from retryflow.dlq.producer import KafkaDeadLetterProducer
from retryflow.retry.models import RetryEvent, RetryResult, RetryStatistics
from retryflow.retry.orchestrator import DEFAULT_CLAIM_TIMEOUT, RetryMode, RetryOrchestrator
from retryflow.retry.policy import DEFAULT_POLICY, RetryPolicy
from retryflow.retry.reconciler import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RETENTION,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    RetryReconciler,
)
from retryflow.retry.registry import (
    EventFactory,
    Processor,
    ProcessorRegistration,
    ProcessorRegistry,
)
from retryflow.retry.store import (
    InMemoryRetryRecordStore,
    JsonFileRetryRecordStore,
    RetryRecordStore,
)

if TYPE_CHECKING:
    from retryflow.config import RetryFlowConfig

logger = logging.getLogger(__name__)


class EventRetryService:
    """
    Retry-protected event processing with dead-letter handoff.

    Usage:
        >>> service = EventRetryService(InMemoryRetryRecordStore(), InMemoryDeadLetterQueue())
        >>> service.register("StockUpdated", update_stock, policy=CRITICAL_POLICY)
        >>> async with service:
        ...     result = await service.execute_with_retry(event)
        ...     stats = await service.get_retry_statistics()
    """

    def __init__(
        self,
        store: RetryRecordStore,
        dead_letter: DeadLetterHandoff,
        *,
        registry: ProcessorRegistry | None = None,
        clock: Clock | None = None,
        mode: RetryMode | str = RetryMode.SCHEDULED,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retention: timedelta = DEFAULT_RETENTION,
        cleanup_interval: float | None = None,
        delete_on_success: bool = True,
        claim_timeout: timedelta = DEFAULT_CLAIM_TIMEOUT,
        default_policy: RetryPolicy = DEFAULT_POLICY,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._dead_letter = dead_letter
        self._registry = registry if registry is not None else ProcessorRegistry()
        self._retention = retention

        self._orchestrator = RetryOrchestrator(
            store,
            dead_letter,
            registry=self._registry,
            clock=clock,
            mode=mode,
            default_policy=default_policy,
            delete_on_success=delete_on_success,
            claim_timeout=claim_timeout,
            rng=rng,
        )
        self._reconciler = RetryReconciler(
            self._orchestrator,
            sweep_interval=sweep_interval,
            max_concurrency=max_concurrency,
            retention=retention,
            cleanup_interval=cleanup_interval,
        )

    @classmethod
    def from_config(
        cls,
        config: "RetryFlowConfig",
        dead_letter: DeadLetterHandoff | None = None,
        **kwargs: Any,
    ) -> "EventRetryService":
        """
        Build a service from configuration.

        A JSON file store is used when store_path is set, in-memory otherwise.
        Without an explicit dead_letter sink, a Kafka producer is created when
        dead_letter.bootstrap_servers is configured, an in-memory queue otherwise.
        """
        clock = kwargs.pop("clock", None)

        if config.store_path:
            store: RetryRecordStore = JsonFileRetryRecordStore(config.store_path, clock=clock)
        else:
            store = InMemoryRetryRecordStore(clock=clock)

        if dead_letter is None:
            if config.dead_letter.uses_kafka:
                dead_letter = KafkaDeadLetterProducer(
                    bootstrap_servers=config.dead_letter.bootstrap_servers,
                    topic=config.dead_letter.topic,
                    client_id=config.dead_letter.client_id,
                    request_timeout_ms=config.dead_letter.request_timeout_ms,
                )
            else:
                dead_letter = InMemoryDeadLetterQueue(clock=clock)

        return cls(
            store,
            dead_letter,
            clock=clock,
            mode=config.mode,
            sweep_interval=config.sweep_interval,
            max_concurrency=config.max_concurrency,
            retention=config.retention,
            cleanup_interval=config.cleanup_interval,
            delete_on_success=config.delete_on_success,
            claim_timeout=config.claim_lease,
            default_policy=config.policy.to_policy(),
            **kwargs,
        )

    @property
    def store(self) -> RetryRecordStore:
        return self._store

    @property
    def dead_letter(self) -> DeadLetterHandoff:
        return self._dead_letter

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry

    @property
    def orchestrator(self) -> RetryOrchestrator:
        return self._orchestrator

    @property
    def reconciler(self) -> RetryReconciler:
        return self._reconciler

    @property
    def is_running(self) -> bool:
        return self._reconciler.is_running

    def register(
        self,
        event_type: str,
        processor: Processor,
        policy: RetryPolicy | None = None,
        event_factory: EventFactory | None = None,
        *,
        replace: bool = False,
    ) -> ProcessorRegistration:
        return self._registry.register(
            event_type, processor, policy, event_factory, replace=replace
        )

    async def execute_with_retry(
        self,
        event: RetryEvent,
        processor: Processor | None = None,
        policy: RetryPolicy | None = None,
    ) -> RetryResult:
        return await self._orchestrator.execute_with_retry(event, processor, policy)

    async def get_retry_statistics(self) -> RetryStatistics:
        return await self._store.get_statistics()

    async def cleanup_old_retry_records(self, retention: timedelta | None = None) -> int:
        """Delete terminal records older than retention (default: configured retention)."""
        retention = retention if retention is not None else self._retention
        removed = await self._store.cleanup(retention)
        logger.info(
            "Cleaned up old retry records",
            extra={"cleaned": removed, "retention_days": retention.days},
        )
        return removed

    async def start(self) -> None:
        """Start the background reconciler."""
        self._reconciler.start()

    async def stop(self) -> None:
        """Stop the reconciler and release the dead-letter sink. Idempotent."""
        await self._reconciler.stop()

        stop_sink = getattr(self._dead_letter, "stop", None)
        if stop_sink is not None:
            await stop_sink()

    async def __aenter__(self) -> "EventRetryService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.stop()
        return False


__all__ = ["EventRetryService"]
