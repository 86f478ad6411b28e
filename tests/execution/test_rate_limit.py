"""Tests for AdaptiveRateLimiter.

A fake clock advances only when the limiter sleeps, so every wait is
observable and the tests take no real time.
"""

from __future__ import annotations

import threading

import pytest

from schemaspine.execution.rate_limit import MAX_BACKOFF, AdaptiveRateLimiter


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def limiter(clock):
    return AdaptiveRateLimiter(1.0, clock=clock, sleep=clock.sleep)


# ── Construction ──────────────────────────────────────────────────────


class TestConstruction:
    def test_initial_state(self, limiter):
        assert limiter.backoff_level == 0
        assert limiter.interval == 1.0
        assert limiter.closed is False

    @pytest.mark.parametrize("base", [0, -1.0])
    def test_non_positive_base_rejected(self, base):
        with pytest.raises(ValueError):
            AdaptiveRateLimiter(base)

    def test_repr(self, limiter):
        assert "backoff_level=0" in repr(limiter)


# ── Backoff level ─────────────────────────────────────────────────────


class TestBackoff:
    def test_ten_failures_reach_max(self, limiter):
        for expected in range(1, 11):
            assert limiter.report_outcome(failed=True) == expected
        assert limiter.backoff_level == MAX_BACKOFF == 10
        assert limiter.interval == 10.0

    def test_level_capped(self, limiter):
        for _ in range(11):
            limiter.report_outcome(failed=True)
        assert limiter.backoff_level == 10

    def test_success_decrements(self, limiter):
        for _ in range(10):
            limiter.report_outcome(failed=True)
        assert limiter.report_outcome(failed=False) == 9
        assert limiter.interval == 9.0

    def test_success_at_zero_stays_zero(self, limiter):
        assert limiter.report_outcome(failed=False) == 0
        assert limiter.backoff_level == 0

    @pytest.mark.parametrize("level, interval", [(0, 2.5), (1, 2.5), (2, 5.0), (4, 10.0), (10, 25.0)])
    def test_interval_is_base_times_level(self, clock, level, interval):
        limiter = AdaptiveRateLimiter(2.5, clock=clock, sleep=clock.sleep)
        for _ in range(level):
            limiter.report_outcome(failed=True)
        assert limiter.interval == interval

    def test_level_zero_and_one_same_interval(self, limiter):
        before = limiter.interval
        limiter.report_outcome(failed=True)
        assert limiter.backoff_level == 1
        assert limiter.interval == before


# ── Tick pacing ───────────────────────────────────────────────────────


class TestTick:
    def test_first_tick_waits_one_interval(self, limiter, clock):
        limiter.tick()
        assert clock.sleeps == [1.0]

    def test_ticks_are_spaced_by_interval(self, limiter, clock):
        for _ in range(3):
            limiter.tick()
        assert clock.sleeps == [1.0, 1.0, 1.0]
        assert clock.now == 103.0

    def test_late_caller_fires_immediately(self, limiter, clock):
        clock.advance(5.0)
        limiter.tick()
        assert clock.sleeps == []

    def test_missed_ticks_are_not_queued(self, limiter, clock):
        """After a long pause only one tick fires immediately."""
        clock.advance(5.0)
        limiter.tick()
        limiter.tick()
        assert clock.sleeps == [1.0]

    def test_failure_reschedules_from_now(self, limiter, clock):
        limiter.report_outcome(failed=True)
        limiter.report_outcome(failed=True)
        limiter.report_outcome(failed=True)
        limiter.tick()
        assert clock.sleeps == [3.0]

    def test_capped_failure_does_not_reschedule(self, limiter, clock):
        for _ in range(10):
            limiter.report_outcome(failed=True)
        clock.advance(4.0)
        limiter.report_outcome(failed=True)  # already at max
        limiter.tick()
        assert clock.sleeps == [6.0]

    def test_success_shortens_next_wait(self, limiter, clock):
        for _ in range(5):
            limiter.report_outcome(failed=True)
        limiter.tick()
        limiter.report_outcome(failed=False)
        limiter.tick()
        assert clock.sleeps == [5.0, 4.0]

    def test_tick_after_close_returns_immediately(self, limiter, clock):
        limiter.close()
        assert limiter.closed
        limiter.tick()
        assert clock.sleeps == []

    def test_context_manager_closes(self, clock):
        with AdaptiveRateLimiter(1.0, clock=clock, sleep=clock.sleep) as limiter:
            assert not limiter.closed
        assert limiter.closed


# ── Concurrency ───────────────────────────────────────────────────────


class TestConcurrency:
    def test_concurrent_reports_are_consistent(self):
        limiter = AdaptiveRateLimiter(1.0, sleep=lambda s: None)

        def fail_many():
            for _ in range(100):
                limiter.report_outcome(failed=True)

        threads = [threading.Thread(target=fail_many) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert limiter.backoff_level == MAX_BACKOFF

    def test_concurrent_ticks_get_distinct_slots(self):
        clock = FakeClock()
        lock = threading.Lock()
        waits: list[float] = []

        def record(seconds):
            with lock:
                waits.append(seconds)

        limiter = AdaptiveRateLimiter(1.0, clock=clock, sleep=record)
        threads = [threading.Thread(target=limiter.tick) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(waits) == [1.0, 2.0, 3.0, 4.0, 5.0]
