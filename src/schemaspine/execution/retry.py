"""Paced retries driven by an ``AdaptiveRateLimiter``.

Example:
    >>> limiter = AdaptiveRateLimiter(base_interval=2.0)
    >>> result = retry_paced(connect_and_update, limiter, attempts=5)
"""

from collections.abc import Callable
from typing import TypeVar

from schemaspine.core.errors import is_retryable
from schemaspine.core.logging import get_logger
from schemaspine.execution.rate_limit import AdaptiveRateLimiter

T = TypeVar("T")

logger = get_logger(__name__)


def retry_paced(
    func: Callable[[], T],
    limiter: AdaptiveRateLimiter,
    *,
    attempts: int = 3,
    retry_if: Callable[[Exception], bool] = is_retryable,
) -> T:
    """Call *func* up to *attempts* times, pacing retries with *limiter*.

    The first call runs immediately; each retry waits for the limiter's
    next tick.  Every outcome is reported to the limiter, so the wait
    grows with consecutive failures.

    Args:
        func: Zero-argument callable to run
        limiter: Limiter owned by the caller
        attempts: Total calls allowed, including the first
        retry_if: Predicate deciding whether an error is worth retrying

    Returns:
        Whatever *func* returns on its first success.

    Raises:
        The last error, once attempts are exhausted or it is not retryable.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        if attempt > 1:
            limiter.tick()
        try:
            value = func()
        except Exception as exc:
            limiter.report_outcome(failed=True)
            if attempt == attempts or not retry_if(exc):
                raise
            logger.warning(
                "retry.attempt_failed",
                attempt=attempt,
                attempts=attempts,
                error=str(exc),
                next_interval=limiter.interval,
            )
            continue
        limiter.report_outcome(failed=False)
        return value
