"""Kafka dead-letter sink for events the orchestrator gives up on."""

import json
import logging
import time

from aiokafka import AIOKafkaProducer

from retryflow.core.errors import DeadLetterHandoffError, classify_exception
from retryflow.core.utils import json_serializer
from retryflow.retry.models import RetryEvent

logger = logging.getLogger(__name__)

DEFAULT_DLQ_TOPIC = "retryflow.dlq"


class KafkaDeadLetterProducer:
    """Lazy-initialized Kafka producer for dead-letter routing.

    Only connects on first send, so no connection is held while nothing
    fails. A publish failure is raised as DeadLetterHandoffError so the
    orchestrator marks the record FAILED rather than DEAD_LETTER.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str = DEFAULT_DLQ_TOPIC,
        client_id: str = "retryflow-dlq",
        request_timeout_ms: int = 30000,
    ):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._client_id = client_id
        self._request_timeout_ms = request_timeout_ms
        self._producer: AIOKafkaProducer | None = None

    @property
    def topic(self) -> str:
        return self._topic

    async def _ensure_started(self) -> None:
        if self._producer is not None:
            return

        logger.info(
            "Initializing DLQ producer",
            extra={"dlq_topic": self._topic},
        )

        producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            value_serializer=lambda v: v,
            request_timeout_ms=self._request_timeout_ms,
            acks="all",
            enable_idempotence=True,
            retry_backoff_ms=1000,
        )
        await producer.start()
        self._producer = producer

        logger.info(
            "DLQ producer started successfully",
            extra={"dlq_topic": self._topic},
        )

    def build_envelope(self, event: RetryEvent, error: BaseException, attempts: int) -> dict:
        return {
            "event_id": event.event_id,
            "event_type": event.event_type,
            "aggregate_id": event.aggregate_id,
            "originator_id": event.originator_id,
            "event": event.model_dump(mode="json"),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "error_category": classify_exception(error).value,
            "attempts": attempts,
            "dlq_timestamp": time.time(),
        }

    async def send(self, event: RetryEvent, error: BaseException, attempts: int) -> None:
        """Publish the failed event to the DLQ topic, keyed by event_id."""
        try:
            await self._ensure_started()

            value = json.dumps(
                self.build_envelope(event, error, attempts), default=json_serializer
            ).encode("utf-8")
            headers = [
                ("dlq_event_type", event.event_type.encode("utf-8")),
                ("dlq_error_type", type(error).__name__.encode("utf-8")),
            ]

            metadata = await self._producer.send_and_wait(
                self._topic,
                key=event.event_id.encode("utf-8"),
                value=value,
                headers=headers,
            )
        except Exception as e:
            logger.error(
                "Failed to send event to DLQ",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "dlq_topic": self._topic,
                    "attempts": attempts,
                },
                exc_info=True,
            )
            raise DeadLetterHandoffError(
                f"Could not publish event '{event.event_id}' to {self._topic}", cause=e
            ) from e

        logger.info(
            "Event sent to DLQ successfully",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type,
                "dlq_topic": self._topic,
                "dlq_partition": metadata.partition,
                "dlq_offset": metadata.offset,
                "attempts": attempts,
                "error_type": type(error).__name__,
            },
        )

    async def stop(self) -> None:
        if self._producer is None:
            return

        try:
            await self._producer.flush()
            await self._producer.stop()
            logger.info("DLQ producer stopped successfully")
        except Exception:
            logger.error("Error stopping DLQ producer", exc_info=True)
        finally:
            self._producer = None


__all__ = ["KafkaDeadLetterProducer", "DEFAULT_DLQ_TOPIC"]
