"""Tests for retry data model and status lifecycle."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from retryflow.retry.models import (
    RetryEvent,
    RetryRecord,
    RetryResult,
    RetryStatus,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class TestRetryStatus:
    @pytest.mark.parametrize(
        "current,target",
        [
            (RetryStatus.PENDING, RetryStatus.RETRYING),
            (RetryStatus.RETRYING, RetryStatus.RETRYING),
            (RetryStatus.RETRYING, RetryStatus.SUCCEEDED),
            (RetryStatus.RETRYING, RetryStatus.DEAD_LETTER),
            (RetryStatus.RETRYING, RetryStatus.FAILED),
        ],
    )
    def test_allowed_transitions(self, current, target):
        assert current.can_transition_to(target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (RetryStatus.PENDING, RetryStatus.DEAD_LETTER),
            (RetryStatus.PENDING, RetryStatus.SUCCEEDED),
            (RetryStatus.SUCCEEDED, RetryStatus.RETRYING),
            (RetryStatus.DEAD_LETTER, RetryStatus.RETRYING),
            (RetryStatus.FAILED, RetryStatus.DEAD_LETTER),
            (RetryStatus.RETRYING, RetryStatus.PENDING),
        ],
    )
    def test_forbidden_transitions(self, current, target):
        assert not current.can_transition_to(target)

    def test_terminal_statuses(self):
        assert RetryStatus.SUCCEEDED.is_terminal
        assert RetryStatus.FAILED.is_terminal
        assert RetryStatus.DEAD_LETTER.is_terminal
        assert not RetryStatus.PENDING.is_terminal
        assert not RetryStatus.RETRYING.is_terminal


class TestRetryEvent:
    def test_strips_identity_fields(self):
        event = RetryEvent(event_id="  evt-1 ", event_type=" StockUpdated")
        assert event.event_id == "evt-1"
        assert event.event_type == "StockUpdated"

    @pytest.mark.parametrize("event_id", ["", "   "])
    def test_rejects_blank_event_id(self, event_id):
        with pytest.raises(ValidationError):
            RetryEvent(event_id=event_id, event_type="StockUpdated")

    def test_naive_timestamp_becomes_utc(self):
        event = RetryEvent(event_id="e", event_type="t", occurred_at=datetime(2026, 1, 1))
        assert event.occurred_at.tzinfo == UTC

    def test_from_record(self):
        record = RetryRecord(
            event_id="evt-1",
            event_type="OrderPlaced",
            aggregate_id="order-9",
            originator_id="user-1",
            max_attempts=3,
            first_attempt_at=NOW,
            last_attempt_at=NOW,
            metadata={"total": 10},
        )
        event = RetryEvent.from_record(record)

        assert event.event_id == "evt-1"
        assert event.aggregate_id == "order-9"
        assert event.occurred_at == NOW
        assert event.metadata == {"total": 10}


class TestRetryRecord:
    def _record(self, **kwargs):
        defaults = dict(
            event_id="evt-1",
            event_type="StockUpdated",
            max_attempts=3,
            first_attempt_at=NOW,
            last_attempt_at=NOW,
        )
        defaults.update(kwargs)
        return RetryRecord(**defaults)

    def test_for_event_starts_pending(self):
        event = RetryEvent(event_id="evt-1", event_type="StockUpdated", metadata={"a": 1})
        record = RetryRecord.for_event(event, max_attempts=5, now=NOW)

        assert record.status == RetryStatus.PENDING
        assert record.attempts == 0
        assert record.max_attempts == 5
        assert record.first_attempt_at == record.last_attempt_at == NOW
        assert record.metadata == {"a": 1}

    def test_attempts_cannot_exceed_max(self):
        with pytest.raises(ValidationError):
            self._record(attempts=4)

    def test_max_attempts_at_least_one(self):
        with pytest.raises(ValidationError):
            self._record(max_attempts=0)

    def test_is_due(self):
        record = self._record(status=RetryStatus.RETRYING, attempts=1, next_retry_at=NOW)
        assert record.is_due(NOW)
        assert not record.is_due(NOW - timedelta(seconds=1))

    def test_not_due_without_next_retry(self):
        assert not self._record(status=RetryStatus.RETRYING).is_due(NOW)

    def test_attempts_remaining(self):
        assert self._record(attempts=1).attempts_remaining == 2


class TestRetryResult:
    def test_scheduled_and_final(self):
        scheduled = RetryResult(False, 1, 0.0, RetryStatus.RETRYING, next_retry_at=NOW)
        final = RetryResult(False, 3, 7.0, RetryStatus.DEAD_LETTER)

        assert scheduled.scheduled and not scheduled.final
        assert final.final and not final.scheduled
