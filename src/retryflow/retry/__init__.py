"""
Retry engine.

Components, leaves first:
- backoff: pure delay calculation
- policy: RetryPolicy (budget, backoff shape, error classification)
- models: RetryEvent, RetryRecord, RetryResult, statistics schemas
- store: RetryRecordStore contract and implementations
- registry: event_type -> processor registrations for resumption
- orchestrator: the attempt loop
- reconciler: background resumption of due retries
- service: EventRetryService composition root (import from retryflow.retry.service)
"""

from retryflow.retry.backoff import base_delay_for, compute_delay
from retryflow.retry.models import (
    TERMINAL_STATUSES,
    EventTypeStatistics,
    RetryEvent,
    RetryRecord,
    RetryResult,
    RetryStatistics,
    RetryStatus,
)
from retryflow.retry.orchestrator import RetryMode, RetryOrchestrator
from retryflow.retry.policy import (
    CONSERVATIVE_POLICY,
    CRITICAL_POLICY,
    DEFAULT_POLICY,
    NO_RETRY_POLICY,
    REAL_TIME_POLICY,
    RetryPolicy,
)
from retryflow.retry.reconciler import RetryReconciler
from retryflow.retry.registry import ProcessorRegistration, ProcessorRegistry
from retryflow.retry.statistics import compute_statistics
from retryflow.retry.store import (
    InMemoryRetryRecordStore,
    JsonFileRetryRecordStore,
    RetryRecordStore,
)

__all__ = [
    # Backoff
    "base_delay_for",
    "compute_delay",
    # Policy
    "RetryPolicy",
    "DEFAULT_POLICY",
    "CRITICAL_POLICY",
    "CONSERVATIVE_POLICY",
    "REAL_TIME_POLICY",
    "NO_RETRY_POLICY",
    # Models
    "RetryStatus",
    "TERMINAL_STATUSES",
    "RetryEvent",
    "RetryRecord",
    "RetryResult",
    "RetryStatistics",
    "EventTypeStatistics",
    "compute_statistics",
    # Stores
    "RetryRecordStore",
    "InMemoryRetryRecordStore",
    "JsonFileRetryRecordStore",
    # Orchestration
    "ProcessorRegistry",
    "ProcessorRegistration",
    "RetryMode",
    "RetryOrchestrator",
    "RetryReconciler",
]
