"""Exponential backoff calculation for retries."""

from typing import List, Optional

from callguard.domain.models.common import Milliseconds
from callguard.domain.models.resilience import DEFAULT_BACKOFF_FACTOR, RetryConfig


def compute_delay(
    attempt_index: int,
    base_delay_ms: Milliseconds,
    max_delay_ms: Optional[Milliseconds] = None,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
) -> Milliseconds:
    """Computes the wait before the next attempt.

    Args:
        attempt_index: 0 for the first retry, 1 for the second, and so on.
        base_delay_ms: Delay before the first retry.
        max_delay_ms: Upper bound for any delay; None leaves it uncapped.
        backoff_factor: Growth factor between retries.

    Returns:
        ``min(base_delay_ms * backoff_factor ** attempt_index, max_delay_ms)``
    """
    if attempt_index < 0:
        raise ValueError(f"attempt_index must be >= 0, got {attempt_index}")
    delay = base_delay_ms * (backoff_factor ** attempt_index)
    if max_delay_ms is not None:
        delay = min(delay, max_delay_ms)
    return delay


def delay_schedule(config: RetryConfig) -> List[Milliseconds]:
    """Returns every wait a call would go through if all its attempts failed retryably."""
    return [
        compute_delay(i, config.base_delay_ms, config.max_delay_ms, config.backoff_factor)
        for i in range(config.max_retries)
    ]
