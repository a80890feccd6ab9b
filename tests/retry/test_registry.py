"""Tests for the processor registry."""

import pytest

from retryflow.core.errors import ProcessorNotRegisteredError
from retryflow.retry.models import RetryEvent
from retryflow.retry.policy import CRITICAL_POLICY
from retryflow.retry.registry import ProcessorRegistry


async def process(event):
    return event.event_id


class TestProcessorRegistry:
    def test_register_and_get(self):
        registry = ProcessorRegistry()
        registration = registry.register("StockUpdated", process, CRITICAL_POLICY)

        assert "StockUpdated" in registry
        assert len(registry) == 1
        assert registry.get("StockUpdated") is registration
        assert registration.policy is CRITICAL_POLICY
        assert registration.event_factory == RetryEvent.from_record

    def test_duplicate_requires_replace(self):
        registry = ProcessorRegistry()
        registry.register("StockUpdated", process)

        with pytest.raises(ValueError):
            registry.register("StockUpdated", process)

        replacement = registry.register("StockUpdated", print, replace=True)
        assert registry.get("StockUpdated") is replacement

    def test_rejects_blank_event_type(self):
        with pytest.raises(ValueError):
            ProcessorRegistry().register("  ", process)

    def test_require_raises_for_unknown_type(self):
        with pytest.raises(ProcessorNotRegisteredError):
            ProcessorRegistry().require("Unknown")

    def test_unregister(self):
        registry = ProcessorRegistry()
        registry.register("StockUpdated", process)

        assert registry.unregister("StockUpdated")
        assert not registry.unregister("StockUpdated")
        assert registry.get("StockUpdated") is None

    def test_event_types_sorted(self):
        registry = ProcessorRegistry()
        registry.register("b", process)
        registry.register("a", process)
        assert registry.event_types == ["a", "b"]

    def test_custom_event_factory(self):
        def factory(record):
            return RetryEvent(event_id=record.event_id, event_type="Custom")

        registration = ProcessorRegistry().register("StockUpdated", process, event_factory=factory)
        assert registration.event_factory is factory
