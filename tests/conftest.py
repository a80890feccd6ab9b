"""
pytest configuration for retryflow tests.

Adds src directory to Python path for imports and provides a deterministic
clock plus the usual store / dead-letter / event fixtures.
"""

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from retryflow.core.logging import clear_log_context  # noqa: E402
from retryflow.dlq import InMemoryDeadLetterQueue  # noqa: E402
from retryflow.retry.models import RetryEvent, RetryRecord, RetryStatus  # noqa: E402
from retryflow.retry.store import InMemoryRetryRecordStore  # noqa: E402

START_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Clock whose sleep() returns immediately and advances time instead."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=max(0.0, seconds))

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryRetryRecordStore(clock=clock)


@pytest.fixture
def dead_letter(clock):
    return InMemoryDeadLetterQueue(clock=clock)


@pytest.fixture
def event():
    return RetryEvent(
        event_id="evt-1",
        event_type="StockUpdated",
        aggregate_id="product-42",
        originator_id="user-7",
        occurred_at=START_TIME,
        metadata={"quantity": 3},
    )


@pytest.fixture
def make_record(clock):
    """Factory for retry records at arbitrary lifecycle points."""

    def _make(
        event_id: str = "evt-1",
        event_type: str = "StockUpdated",
        status: RetryStatus = RetryStatus.RETRYING,
        attempts: int = 1,
        max_attempts: int = 3,
        age: timedelta = timedelta(0),
        next_retry_at: datetime | None = None,
        last_error: str | None = None,
    ) -> RetryRecord:
        at = clock.now() - age
        return RetryRecord(
            event_id=event_id,
            event_type=event_type,
            attempts=attempts,
            max_attempts=max_attempts,
            first_attempt_at=at,
            last_attempt_at=at,
            next_retry_at=next_retry_at,
            last_error=last_error,
            status=status,
        )

    return _make


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()
