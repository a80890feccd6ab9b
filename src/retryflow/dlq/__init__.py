"""
Dead-letter sinks.

Any object with `async send(event, error, attempts)` satisfies
DeadLetterHandoff. Two are provided:
- InMemoryDeadLetterQueue: inspectable, reprocessable, process-local
- KafkaDeadLetterProducer: publishes to a DLQ topic
"""

from retryflow.dlq.handoff import DeadLetterHandoff
from retryflow.dlq.memory import InMemoryDeadLetterQueue
from retryflow.dlq.models import DeadLetterEntry, DeadLetterStatistics
from retryflow.dlq.producer import DEFAULT_DLQ_TOPIC, KafkaDeadLetterProducer

__all__ = [
    "DeadLetterHandoff",
    "DeadLetterEntry",
    "DeadLetterStatistics",
    "InMemoryDeadLetterQueue",
    "KafkaDeadLetterProducer",
    "DEFAULT_DLQ_TOPIC",
]
