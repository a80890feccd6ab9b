"""
Exponential backoff calculation.

    delay = min(base_delay * multiplier ** (attempt - 1), max_delay)

`attempt` counts failed attempts so far: after the first failure attempt=1
yields the delay before the second try. With jitter_fraction > 0 the delay is
drawn uniformly from delay * (1 +/- jitter_fraction), floored at zero.
"""

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retryflow.retry.policy import RetryPolicy


def base_delay_for(attempt: int, policy: "RetryPolicy") -> float:
    """Deterministic (jitter-free) delay for the given attempt, in seconds."""
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    try:
        delay = policy.base_delay * (policy.multiplier ** (attempt - 1))
    except OverflowError:
        return policy.max_delay
    return min(delay, policy.max_delay)


def compute_delay(
    attempt: int,
    policy: "RetryPolicy",
    rng: random.Random | None = None,
) -> float:
    """
    Delay in seconds before the next attempt.

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        policy: Retry policy supplying base_delay, multiplier, max_delay, jitter
        rng: Optional random source (defaults to the module-level generator)

    Returns:
        Delay in seconds, never negative
    """
    delay = base_delay_for(attempt, policy)

    if policy.jitter_fraction > 0 and delay > 0:
        # Spread synchronized retries across a window around the nominal delay
        spread = delay * policy.jitter_fraction
        source = rng or random
        delay = source.uniform(delay - spread, delay + spread)

    return max(0.0, delay)


__all__ = ["base_delay_for", "compute_delay"]
