"""Dead-letter handoff contract."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from retryflow.retry.models import RetryEvent


@runtime_checkable
class DeadLetterHandoff(Protocol):
    """Durable sink for events that will not be retried again.

    send() returning normally means the event is parked and the orchestrator
    marks its record DEAD_LETTER. Raising means it could not be parked and
    the record is marked FAILED instead.
    """

    async def send(self, event: "RetryEvent", error: BaseException, attempts: int) -> None:
        ...


__all__ = ["DeadLetterHandoff"]
