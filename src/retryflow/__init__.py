"""
retryflow: retry and dead-letter orchestration for event processing.

Runs caller-supplied processors under a bounded exponential-backoff retry
policy, keeps durable per-event retry bookkeeping, resumes scheduled
retries in the background and parks permanently failing events in a
dead-letter sink.
"""

from retryflow.dlq import InMemoryDeadLetterQueue, KafkaDeadLetterProducer
from retryflow.retry import (
    DEFAULT_POLICY,
    InMemoryRetryRecordStore,
    JsonFileRetryRecordStore,
    RetryEvent,
    RetryMode,
    RetryPolicy,
    RetryResult,
    RetryStatistics,
    RetryStatus,
)
from retryflow.retry.service import EventRetryService

__version__ = "0.1.0"

__all__ = [
    "EventRetryService",
    "RetryEvent",
    "RetryMode",
    "RetryPolicy",
    "DEFAULT_POLICY",
    "RetryResult",
    "RetryStatistics",
    "RetryStatus",
    "InMemoryRetryRecordStore",
    "JsonFileRetryRecordStore",
    "InMemoryDeadLetterQueue",
    "KafkaDeadLetterProducer",
]
