"""Completion polling for asynchronous temporary loads.

The engine gives no notification when an asynchronous load finishes, so
the pipeline asks whether the named copy exists on a fixed number of
ticks. Running out of ticks is a normal outcome, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading
import time
from typing import Callable, Generator

from core.constants import (
    LEGACY_POLL_MAX_ATTEMPTS,
    POLL_PROGRESS_OFFSET,
    POLL_TICK_DIVISOR,
)
from core.interfaces import QueryEngine
from core.logging_config import get_logger
from core.types import ProgressEvent
from ingest.load_progress import PROGRESS_LOAD

_LOGGER = get_logger(__name__)

Sleeper = Callable[[float], None]


@dataclass(frozen=True)
class PollPlan:
    """Interval and attempt budget for one polling run.

    Attributes:
        interval_seconds: Sleep between existence checks.
        max_attempts: Loop bound; at most ``max_attempts - 1`` checks run.
    """

    interval_seconds: float
    max_attempts: int

    @property
    def max_wait_seconds(self) -> float:
        return self.interval_seconds * max(0, self.max_attempts - 1)


def build_poll_plan(timeout_seconds: int, strategy: str) -> PollPlan:
    """Derive the polling plan from the load timeout.

    ``legacy`` keeps 90 attempts with ``timeout // 50`` second ticks, so the
    real bound is about 1.8x the timeout. ``bounded`` fits 50 checks
    exactly inside the timeout.
    """
    if strategy == "bounded":
        return PollPlan(
            interval_seconds=timeout_seconds / POLL_TICK_DIVISOR,
            max_attempts=POLL_TICK_DIVISOR + 1,
        )
    return PollPlan(
        interval_seconds=float(timeout_seconds // POLL_TICK_DIVISOR),
        max_attempts=LEGACY_POLL_MAX_ATTEMPTS,
    )


def suspend(
    seconds: float,
    cancel_event: threading.Event | None = None,
    sleep: Sleeper = time.sleep,
) -> bool:
    """Block the calling worker for ``seconds``.

    Returns:
        True when the wait ended because ``cancel_event`` was set.
    """
    if cancel_event is not None:
        if seconds <= 0:
            return cancel_event.is_set()
        return cancel_event.wait(seconds)
    if seconds > 0:
        sleep(seconds)
    return False


class CompletionPoller:
    """Bounded existence polling against the query engine."""

    def __init__(
        self,
        engine: QueryEngine,
        cancel_event: threading.Event | None = None,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._engine = engine
        self._cancel_event = cancel_event
        self._sleep = sleep

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def iter_poll(
        self,
        engine_name: str,
        interval_seconds: float,
        max_attempts: int,
    ) -> Generator[ProgressEvent, None, bool]:
        """Yield tick events while polling; the generator returns the outcome.

        Args:
            engine_name: Engine-side name to wait for.
            interval_seconds: Sleep before each existence check.
            max_attempts: Loop bound; no event is emitted on the final iteration.

        Returns:
            True once the engine reports the copy, False when attempts run out
            or the load was cancelled.
        """
        count = 1
        while True:
            if count >= max_attempts:
                break
            yield ProgressEvent(percent=count + POLL_PROGRESS_OFFSET, code=PROGRESS_LOAD)
            if suspend(interval_seconds, self._cancel_event, self._sleep):
                _LOGGER.info("completion_poll_cancelled", engine_name=engine_name, attempt=count)
                return False
            _LOGGER.debug("completion_poll_check", engine_name=engine_name, attempt=count)
            if self._engine.exists_loaded(engine_name):
                return True
            count += 1
        _LOGGER.warning(
            "completion_poll_exhausted",
            engine_name=engine_name,
            attempts=count,
            interval_seconds=interval_seconds,
        )
        return False

    def poll_until_exists(
        self,
        engine_name: str,
        interval_seconds: float,
        max_attempts: int,
        on_event: Callable[[ProgressEvent], None] | None = None,
    ) -> bool:
        """Poll until the copy exists or attempts run out.

        Tick events are passed to ``on_event`` when given.
        """
        ticks = self.iter_poll(engine_name, interval_seconds, max_attempts)
        while True:
            try:
                event = next(ticks)
            except StopIteration as stop:
                return bool(stop.value)
            if on_event is not None:
                on_event(event)
