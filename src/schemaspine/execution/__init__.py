"""Pacing primitives for callers that retry against a flaky dependency."""

from schemaspine.execution.rate_limit import MAX_BACKOFF, AdaptiveRateLimiter
from schemaspine.execution.retry import retry_paced

__all__ = ["MAX_BACKOFF", "AdaptiveRateLimiter", "retry_paced"]
