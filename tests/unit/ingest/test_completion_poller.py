"""Unit tests for asynchronous completion polling."""

from __future__ import annotations

import threading

from ingest.completion_poller import CompletionPoller, build_poll_plan


class _FakeEngine:
    def __init__(self, ready_after: int | None) -> None:
        self.checks = 0
        self._ready_after = ready_after

    def exists_loaded(self, engine_name: str) -> bool:
        self.checks += 1
        return self._ready_after is not None and self.checks >= self._ready_after


class _FakeClock:
    def __init__(self) -> None:
        self.slept = 0.0

    def sleep(self, seconds: float) -> None:
        self.slept += seconds


def test_legacy_plan_keeps_ninety_attempts() -> None:
    """Legacy polling ticks every timeout // 50 seconds for 90 attempts."""
    plan = build_poll_plan(900, "legacy")

    assert plan.interval_seconds == 18 and plan.max_attempts == 90


def test_bounded_plan_fits_timeout() -> None:
    """Bounded polling never waits longer than the timeout."""
    plan = build_poll_plan(900, "bounded")

    assert plan.max_wait_seconds <= 900


def test_poll_returns_true_once_engine_reports_copy() -> None:
    """Polling stops at the first successful check."""
    engine = _FakeEngine(ready_after=3)
    clock = _FakeClock()
    events = []

    loaded = CompletionPoller(engine, sleep=clock.sleep).poll_until_exists(
        "sales_ab12c", 18, 90, on_event=events.append
    )

    assert loaded and engine.checks == 3 and [event.percent for event in events] == [11, 12, 13]


def test_poll_exhaustion_is_bounded() -> None:
    """Exhausted polling waits at most 89 intervals and reports no success."""
    engine = _FakeEngine(ready_after=None)
    clock = _FakeClock()
    events = []

    loaded = CompletionPoller(engine, sleep=clock.sleep).poll_until_exists(
        "sales_ab12c", 18, 90, on_event=events.append
    )

    assert (
        not loaded
        and engine.checks == 89
        and clock.slept <= 90 * 18
        and events[-1].percent == 99
    )


def test_poll_stops_when_cancelled() -> None:
    """A set cancel event ends polling before any engine check."""
    engine = _FakeEngine(ready_after=1)
    cancel_event = threading.Event()
    cancel_event.set()
    poller = CompletionPoller(engine, cancel_event=cancel_event)

    loaded = poller.poll_until_exists("sales_ab12c", 18, 90)

    assert not loaded and poller.cancelled and engine.checks == 0
