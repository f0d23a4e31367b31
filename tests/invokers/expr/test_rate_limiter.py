"""
Tests for the sliding-window rate limiter.
"""

import dataclasses
import logging

import pytest

from invokers.expr import (
    DEFAULT_EXPRESSION_LIMITS,
    UNDEFINED,
    ExpressionEngine,
    SlidingWindowRateLimiter,
)


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowRateLimiter:
    """Tests for permit accounting."""

    def test_denies_past_capacity(self):
        limiter = SlidingWindowRateLimiter(max_events=3, window_ms=1000, clock=FakeClock())
        assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]
        assert limiter.in_window() == 3

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_events=2, window_ms=1000, clock=clock)
        limiter.try_acquire()
        clock.advance(0.5)
        limiter.try_acquire()
        assert limiter.try_acquire() is False

        clock.advance(0.5)
        assert limiter.in_window() == 1
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False

    def test_denied_calls_are_not_recorded(self):
        clock = FakeClock()
        limiter = SlidingWindowRateLimiter(max_events=1, window_ms=1000, clock=clock)
        limiter.try_acquire()
        clock.advance(0.75)
        assert limiter.try_acquire() is False
        clock.advance(0.25)
        assert limiter.try_acquire() is True

    def test_reset(self):
        limiter = SlidingWindowRateLimiter(max_events=1, clock=FakeClock())
        limiter.try_acquire()
        limiter.reset()
        assert limiter.try_acquire() is True

    @pytest.mark.parametrize("kwargs", [{"max_events": 0}, {"window_ms": 0}])
    def test_rejects_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(**kwargs)


class TestEngineRateLimiting:
    """Tests for rate limiting observed through the engine."""

    def test_excess_evaluation_is_skipped_silently(self, caplog):
        clock = FakeClock()
        engine = ExpressionEngine(clock=clock)
        limit = DEFAULT_EXPRESSION_LIMITS.max_evaluations_per_window

        for _ in range(limit):
            assert engine.evaluate("1 + 1") == 2

        with caplog.at_level(logging.WARNING, logger="invokers.expr.engine"):
            assert engine.evaluate("1 + 1") is UNDEFINED

        assert [r.getMessage() for r in caplog.records] == ["expression_rate_limited"]

    def test_skipped_evaluation_does_not_parse_or_raise(self):
        limits = dataclasses.replace(DEFAULT_EXPRESSION_LIMITS, max_evaluations_per_window=1)
        engine = ExpressionEngine(limits=limits, clock=FakeClock())
        engine.evaluate("1")
        assert engine.evaluate("1 +") is UNDEFINED
        assert "1 +" not in engine.cache

    def test_permits_return_after_window(self):
        clock = FakeClock()
        limits = dataclasses.replace(
            DEFAULT_EXPRESSION_LIMITS,
            max_evaluations_per_window=2,
            rate_limit_window_ms=500,
        )
        engine = ExpressionEngine(limits=limits, clock=clock)
        engine.evaluate("1")
        engine.evaluate("1")
        assert engine.evaluate("1") is UNDEFINED

        clock.advance(0.5)
        assert engine.evaluate("1") == 1

    def test_repeated_denials_warn_once(self, caplog):
        clock = FakeClock()
        limits = dataclasses.replace(
            DEFAULT_EXPRESSION_LIMITS,
            max_evaluations_per_window=1,
            rate_limit_window_ms=1000,
        )
        engine = ExpressionEngine(limits=limits, clock=clock)
        engine.evaluate("1")

        with caplog.at_level(logging.DEBUG, logger="invokers.expr.engine"):
            for _ in range(5):
                engine.evaluate("1")
        levels = [r.levelno for r in caplog.records if r.getMessage() == "expression_rate_limited"]
        assert levels == [logging.WARNING] + [logging.DEBUG] * 4

        caplog.clear()
        clock.advance(1.0)
        with caplog.at_level(logging.WARNING, logger="invokers.expr.engine"):
            assert engine.evaluate("1") == 1
            assert engine.evaluate("1") is UNDEFINED
        assert [r.getMessage() for r in caplog.records] == ["expression_rate_limited"]
