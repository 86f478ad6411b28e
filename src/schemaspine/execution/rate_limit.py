"""Adaptive rate limiting: pace calls to a dependency that may be failing.

Manifesto:
Repeatedly calling a degraded database or API at full speed makes the
outage worse. ``AdaptiveRateLimiter`` paces a caller's loop at a base
interval and stretches that interval while failures keep being
reported, then shrinks it back as calls succeed. Call sites never do
interval arithmetic themselves.

ARCHITECTURE
────────────
::

    tick()                        blocks until the next slot
    report_outcome(failed=True)   level += 1 (up to MAX_BACKOFF), reschedule
    report_outcome(failed=False)  level -= 1 (down to 0), reschedule
    close()                       release the timer

    interval = base_interval × max(level, 1)

    level:     0    1    2    3   ...  10
    interval:  1×   1×   2×   3×  ...  10×

Backoff is linear, not exponential, and capped at ``MAX_BACKOFF`` so a
long outage never pushes the pace beyond ten base intervals.

BEST PRACTICES
──────────────
- One limiter per loop; share across threads only if the loop does.
- Report every outcome, success included, or the level never comes back down.
- Use ``retry_paced`` from ``schemaspine.execution.retry`` for the common
  "try N times" loop.

Example::

    with AdaptiveRateLimiter(base_interval=1.0) as limiter:
        while work_remaining():
            limiter.tick()
            try:
                fetch_next_page()
            except ConnectionError:
                limiter.report_outcome(failed=True)
            else:
                limiter.report_outcome(failed=False)

Tags:
    schema-spine, execution, rate-limit, backoff, throttle

Doc-Types:
    api-reference
"""

import threading
import time
from collections.abc import Callable

MAX_BACKOFF = 10


class AdaptiveRateLimiter:
    """Ticker whose period grows linearly with reported failures.

    The limiter owns a single schedule (the time of the next tick).
    ``tick`` reserves the next slot under an internal lock and sleeps
    outside it, so concurrent callers are paced one slot apart.
    Rescheduling on ``report_outcome`` restarts the period from now,
    the same way resetting a ticker does.

    Attributes:
        base_interval: Seconds between ticks at backoff level 0 or 1
    """

    def __init__(
        self,
        base_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if base_interval <= 0:
            raise ValueError(f"base_interval must be positive, got {base_interval}")
        self.base_interval = base_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._backoff_level = 0
        self._closed = False
        self._next_tick = clock() + base_interval

    @property
    def backoff_level(self) -> int:
        with self._lock:
            return self._backoff_level

    @property
    def interval(self) -> float:
        """Current seconds between ticks."""
        with self._lock:
            return self._interval()

    @property
    def closed(self) -> bool:
        return self._closed

    def _interval(self) -> float:
        return self.base_interval * max(self._backoff_level, 1)

    def tick(self) -> None:
        """Block until the next tick.

        Calling ``tick`` after ``close`` is a caller bug; it returns
        immediately.
        """
        with self._lock:
            if self._closed:
                return
            now = self._clock()
            # Late callers fire immediately; missed ticks are not queued.
            fire_at = max(self._next_tick, now)
            self._next_tick = fire_at + self._interval()
        wait = fire_at - now
        if wait > 0:
            self._sleep(wait)

    def report_outcome(self, failed: bool) -> int:
        """Adjust the backoff level and reschedule if it changed.

        Returns:
            The backoff level after the adjustment.
        """
        with self._lock:
            update = False
            if failed:
                if self._backoff_level < MAX_BACKOFF:
                    self._backoff_level += 1
                    update = True
            elif self._backoff_level > 0:
                self._backoff_level -= 1
                update = True

            if update:
                self._next_tick = self._clock() + self._interval()
            return self._backoff_level

    def close(self) -> None:
        """Stop the limiter.  ``tick`` must not be called afterwards."""
        with self._lock:
            self._closed = True

    def __enter__(self) -> "AdaptiveRateLimiter":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"AdaptiveRateLimiter(base_interval={self.base_interval}, "
            f"backoff_level={self._backoff_level}, closed={self._closed})"
        )
