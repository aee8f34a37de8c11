"""Progress reporting for temporary loads.

This module publishes percent/status events to per-request topics. Publishing
is fire-and-forget: delivery failures are logged and never reach the load
pipeline, whose returned record is the authoritative outcome.
"""

from __future__ import annotations

import json
import threading
from typing import Callable, Sequence

from core.constants import TOPIC_LOAD_PROGRESS
from core.interfaces import ProgressReporter
from core.logging_config import get_logger
from core.types import ProgressEvent

_LOGGER = get_logger(__name__)

START_LOAD = "START_LOAD_TEMP_DATASOURCE"
PROGRESS_GET_DATA = "PROGRESS_GET_DATA_FROM_LINK_DATASOURCE"
FAIL_TO_LOAD_LINK = "FAIL_TO_LOAD_LINK_DATASOURCE"
COMPLETE_GET_DATA = "COMPLETE_GET_DATA_FROM_LINK_DATASOURCE"
FAIL_TO_SUBMIT = "FAIL_TO_SUBMIT_TEMP_DATASOURCE"
PROGRESS_LOAD = "PROGRESS_LOAD_TEMP_DATASOURCE"
TIMEOUT_LOAD = "TIMEOUT_LOAD_TEMP_DATASOURCE"
CANCEL_LOAD = "CANCEL_LOAD_TEMP_DATASOURCE"
COMPLETE_LOAD = "COMPLETE_LOAD_TEMP_DATASOURCE"

ProgressCallback = Callable[[ProgressEvent], None]


def progress_topic(request_id: str) -> str:
    """Return the topic that carries progress for one load request."""
    return TOPIC_LOAD_PROGRESS.format(request_id=request_id)


def encode_progress(event: ProgressEvent) -> str:
    """Serialize an event to its ``{percent, code}`` wire payload."""
    return json.dumps(event.to_payload(), sort_keys=True)


class LoggingProgressReporter:
    """Write each progress event as one structured log line."""

    def publish(self, topic: str, event: ProgressEvent) -> None:
        _LOGGER.debug("load_progress_published", topic=topic, payload=encode_progress(event))


class TopicProgressBroker:
    """In-process pub/sub broker keyed by topic.

    Subscribers attached after an event was published never see it; there
    is no buffering for late subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[ProgressCallback]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: ProgressCallback) -> Callable[[], None]:
        """Attach a callback to a topic and return a function that detaches it."""
        with self._lock:
            self._subscribers.setdefault(topic, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(topic, None)

        return _unsubscribe

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, []))

    def publish(self, topic: str, event: ProgressEvent) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(topic, []))
        for callback in callbacks:
            try:
                callback(event)
            except Exception as error:
                _LOGGER.warning(
                    "load_progress_delivery_failed",
                    topic=topic,
                    percent=event.percent,
                    code=event.code,
                    error=str(error),
                )


class CompositeProgressReporter:
    """Fan one event out to several reporters."""

    def __init__(self, reporters: Sequence[ProgressReporter]) -> None:
        self._reporters = tuple(reporters)

    def publish(self, topic: str, event: ProgressEvent) -> None:
        for reporter in self._reporters:
            publish_quietly(reporter, topic, event)


def publish_quietly(reporter: ProgressReporter, topic: str, event: ProgressEvent) -> None:
    """Publish one event, logging instead of raising on delivery failure."""
    try:
        reporter.publish(topic, event)
    except Exception as error:
        _LOGGER.warning(
            "load_progress_delivery_failed",
            topic=topic,
            percent=event.percent,
            code=event.code,
            error=str(error),
        )
