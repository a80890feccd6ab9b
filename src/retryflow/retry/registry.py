"""
Processor registry.

Resumed retries cannot carry a closure across a sweep (or a restart), so
processors are registered by event type at the composition root. The
reconciler rebuilds the event from its record and looks the processor up here.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from retryflow.core.errors import ProcessorNotRegisteredError
from retryflow.retry.models import RetryEvent, RetryRecord
from retryflow.retry.policy import RetryPolicy

logger = logging.getLogger(__name__)

# Plain callables and coroutine functions are both accepted
Processor = Callable[[RetryEvent], Any | Awaitable[Any]]
EventFactory = Callable[[RetryRecord], RetryEvent]


@dataclass(frozen=True)
class ProcessorRegistration:
    """How to process (and rebuild) events of one type."""

    event_type: str
    processor: Processor
    policy: RetryPolicy | None = None
    event_factory: EventFactory = field(default=RetryEvent.from_record)


class ProcessorRegistry:
    """event_type -> ProcessorRegistration."""

    def __init__(self):
        self._registrations: dict[str, ProcessorRegistration] = {}

    def __contains__(self, event_type: str) -> bool:
        return event_type in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    @property
    def event_types(self) -> list[str]:
        return sorted(self._registrations)

    def register(
        self,
        event_type: str,
        processor: Processor,
        policy: RetryPolicy | None = None,
        event_factory: EventFactory | None = None,
        *,
        replace: bool = False,
    ) -> ProcessorRegistration:
        """
        Register the processor for an event type.

        Raises:
            ValueError: event_type is empty, or already registered and replace is False
        """
        if not event_type or not event_type.strip():
            raise ValueError("event_type cannot be empty or whitespace")
        event_type = event_type.strip()

        if event_type in self._registrations and not replace:
            raise ValueError(f"Processor already registered for event type '{event_type}'")

        registration = ProcessorRegistration(
            event_type=event_type,
            processor=processor,
            policy=policy,
            event_factory=event_factory or RetryEvent.from_record,
        )
        self._registrations[event_type] = registration

        logger.debug(
            "Registered processor",
            extra={
                "event_type": event_type,
                "max_attempts": policy.max_attempts if policy else None,
            },
        )
        return registration

    def unregister(self, event_type: str) -> bool:
        return self._registrations.pop(event_type, None) is not None

    def get(self, event_type: str) -> ProcessorRegistration | None:
        return self._registrations.get(event_type)

    def require(self, event_type: str) -> ProcessorRegistration:
        registration = self._registrations.get(event_type)
        if registration is None:
            raise ProcessorNotRegisteredError(event_type)
        return registration


__all__ = ["Processor", "EventFactory", "ProcessorRegistration", "ProcessorRegistry"]
