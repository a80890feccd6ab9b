"""Tests for the Kafka dead-letter producer."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from retryflow.core.errors import DeadLetterHandoffError
from retryflow.dlq import DeadLetterHandoff, KafkaDeadLetterProducer


@pytest.fixture
def kafka_producer():
    producer = AsyncMock()
    producer.send_and_wait.return_value = MagicMock(partition=2, offset=41)
    with patch("retryflow.dlq.producer.AIOKafkaProducer", return_value=producer) as producer_cls:
        producer.cls = producer_cls
        yield producer


@pytest.fixture
def dlq_producer():
    return KafkaDeadLetterProducer("localhost:9092", topic="inventory.dlq")


class TestKafkaDeadLetterProducer:
    def test_satisfies_handoff_protocol(self, dlq_producer):
        assert isinstance(dlq_producer, DeadLetterHandoff)

    @pytest.mark.asyncio
    async def test_send_publishes_envelope(self, dlq_producer, kafka_producer, event):
        await dlq_producer.send(event, TimeoutError("inventory timed out"), 3)

        kafka_producer.start.assert_awaited_once()
        kafka_producer.send_and_wait.assert_awaited_once()
        call = kafka_producer.send_and_wait.await_args
        assert call.args == ("inventory.dlq",)
        assert call.kwargs["key"] == b"evt-1"
        assert call.kwargs["headers"] == [
            ("dlq_event_type", b"StockUpdated"),
            ("dlq_error_type", b"TimeoutError"),
        ]

        envelope = json.loads(call.kwargs["value"])
        assert envelope["event_id"] == "evt-1"
        assert envelope["aggregate_id"] == "product-42"
        assert envelope["error_type"] == "TimeoutError"
        assert envelope["error_message"] == "inventory timed out"
        assert envelope["error_category"] == "transient"
        assert envelope["attempts"] == 3
        assert envelope["event"]["metadata"] == {"quantity": 3}

    @pytest.mark.asyncio
    async def test_producer_created_lazily_once(self, dlq_producer, kafka_producer, event):
        kafka_producer.cls.assert_not_called()

        await dlq_producer.send(event, TimeoutError(), 1)
        await dlq_producer.send(event, TimeoutError(), 2)

        kafka_producer.cls.assert_called_once()
        assert kafka_producer.cls.call_args.kwargs["bootstrap_servers"] == "localhost:9092"
        assert kafka_producer.cls.call_args.kwargs["acks"] == "all"
        kafka_producer.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_publish_failure_raises_handoff_error(self, dlq_producer, kafka_producer, event):
        kafka_producer.send_and_wait.side_effect = ConnectionError("broker down")

        with pytest.raises(DeadLetterHandoffError) as exc_info:
            await dlq_producer.send(event, ValueError("bad payload"), 1)

        assert isinstance(exc_info.value.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_start_failure_is_retried_on_next_send(self, dlq_producer, kafka_producer, event):
        kafka_producer.start.side_effect = [ConnectionError("no brokers"), None]

        with pytest.raises(DeadLetterHandoffError):
            await dlq_producer.send(event, TimeoutError(), 1)
        await dlq_producer.send(event, TimeoutError(), 1)

        assert kafka_producer.start.await_count == 2
        kafka_producer.send_and_wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_flushes_and_stops(self, dlq_producer, kafka_producer, event):
        await dlq_producer.send(event, TimeoutError(), 1)

        await dlq_producer.stop()
        await dlq_producer.stop()

        kafka_producer.flush.assert_awaited_once()
        kafka_producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, dlq_producer, kafka_producer):
        await dlq_producer.stop()
        kafka_producer.stop.assert_not_called()
