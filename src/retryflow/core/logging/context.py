"""Context variables for structured logging."""

from contextvars import ContextVar

_event_id: ContextVar[str] = ContextVar("event_id", default="")
_event_type: ContextVar[str] = ContextVar("event_type", default="")
_worker_id: ContextVar[str] = ContextVar("worker_id", default="")


def set_log_context(
    event_id: str | None = None,
    event_type: str | None = None,
    worker_id: str | None = None,
) -> None:
    if event_id is not None:
        _event_id.set(event_id)
    if event_type is not None:
        _event_type.set(event_type)
    if worker_id is not None:
        _worker_id.set(worker_id)


def get_log_context() -> dict[str, str]:
    return {
        "event_id": _event_id.get(),
        "event_type": _event_type.get(),
        "worker_id": _worker_id.get(),
    }


def clear_log_context() -> None:
    _event_id.set("")
    _event_type.set("")
    _worker_id.set("")


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(event_id=event.event_id, event_type=event.event_type):
            # All logs in this block carry event_id and event_type
            await process(event)
    """

    def __init__(
        self,
        event_id: str | None = None,
        event_type: str | None = None,
        worker_id: str | None = None,
    ):
        self.new_context = {
            "event_id": event_id,
            "event_type": event_type,
            "worker_id": worker_id,
        }
        self.old_context: dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(**self.old_context)
        return False
