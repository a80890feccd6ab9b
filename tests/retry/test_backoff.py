"""Tests for exponential backoff calculation."""

import random

import pytest

from retryflow.retry.backoff import base_delay_for, compute_delay
from retryflow.retry.policy import RetryPolicy


@pytest.fixture
def policy():
    return RetryPolicy(max_attempts=10, base_delay=1.0, multiplier=2.0, max_delay=60.0, jitter_fraction=0.0)


class TestBaseDelay:
    def test_first_retry_uses_base_delay(self, policy):
        assert base_delay_for(1, policy) == 1.0

    def test_grows_exponentially(self, policy):
        assert [base_delay_for(n, policy) for n in range(1, 6)] == [1.0, 2.0, 4.0, 8.0, 16.0]

    def test_capped_at_max_delay(self, policy):
        assert base_delay_for(7, policy) == 60.0
        assert base_delay_for(50, policy) == 60.0

    def test_huge_attempt_does_not_overflow(self, policy):
        assert base_delay_for(100_000, policy) == 60.0

    def test_never_exceeds_max_and_never_decreases(self):
        for multiplier in (1.0, 1.5, 2.0, 3.0):
            policy = RetryPolicy(base_delay=0.5, multiplier=multiplier, max_delay=30.0, jitter_fraction=0)
            delays = [base_delay_for(n, policy) for n in range(1, 40)]
            assert all(d <= policy.max_delay for d in delays)
            assert delays == sorted(delays)

    def test_rejects_attempt_below_one(self, policy):
        with pytest.raises(ValueError):
            base_delay_for(0, policy)


class TestComputeDelay:
    def test_without_jitter_is_deterministic(self, policy):
        assert compute_delay(3, policy) == compute_delay(3, policy) == 4.0

    def test_jitter_stays_within_fraction(self):
        policy = RetryPolicy(base_delay=10.0, max_delay=100.0, jitter_fraction=0.2)
        rng = random.Random(1234)

        delays = [compute_delay(1, policy, rng) for _ in range(200)]

        assert all(8.0 <= d <= 12.0 for d in delays)
        assert len(set(delays)) > 1

    def test_jitter_is_reproducible_with_seeded_rng(self):
        policy = RetryPolicy(base_delay=1.0, jitter_fraction=0.5)
        first = [compute_delay(2, policy, random.Random(7)) for _ in range(3)]
        second = [compute_delay(2, policy, random.Random(7)) for _ in range(3)]
        assert first == second

    def test_full_jitter_is_floored_at_zero(self):
        policy = RetryPolicy(base_delay=1.0, jitter_fraction=1.0)
        rng = random.Random(99)
        assert all(compute_delay(1, policy, rng) >= 0.0 for _ in range(200))

    def test_zero_base_delay(self):
        policy = RetryPolicy(base_delay=0.0, max_delay=0.0, jitter_fraction=0.5)
        assert compute_delay(3, policy) == 0.0
