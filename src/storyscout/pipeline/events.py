"""Progress events and the channel that carries them from a job to its consumer."""

import json
import logging
import queue
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Event types
INIT = "init"
PUB_START = "pub_start"
SOURCE_TRY = "source_try"
SOURCE_DONE = "source_done"
PUB_DONE = "pub_done"
PROGRESS = "progress"
ERROR = "error"
COMPLETE = "complete"

_CLOSED = object()


@dataclass(frozen=True)
class ProgressEvent:
    """A typed progress notification."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> str:
        """Server-sent-events wire block: ``event: <type>\\ndata: <json>\\n\\n``."""
        return f"event: {self.type}\ndata: {json.dumps(self.data, ensure_ascii=False, default=str)}\n\n"


class EventChannel:
    """Single-producer, single-consumer event stream with cancellation.

    The producer calls :meth:`send` and finally :meth:`close`. The consumer
    iterates the channel, which yields events in send order and stops once
    the channel is closed. Either side may call :meth:`cancel`; the producer
    checks :attr:`cancelled` between units of work.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._cancel = threading.Event()
        self._closed = threading.Event()
        self._lock = threading.Lock()

    def send(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        """Enqueue an event. Events sent after close are dropped."""
        with self._lock:
            if self._closed.is_set():
                logger.debug("Dropping %s event on closed channel", event_type)
                return
            self._queue.put(ProgressEvent(event_type, data or {}))

    def close(self) -> None:
        """Mark end of stream. Only the first call has an effect."""
        with self._lock:
            if self._closed.is_set():
                return
            self._closed.set()
            self._queue.put(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def cancel(self) -> None:
        """Ask the producer to stop after its current unit of work."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def pause(self, seconds: float) -> bool:
        """Sleep for a pacing delay, waking early on cancellation.

        Returns:
            True if the channel was cancelled during or before the pause.
        """
        if seconds <= 0:
            return self.cancelled
        return self._cancel.wait(seconds)

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        """Next event, or None at end of stream.

        Raises:
            queue.Empty: Nothing arrived within ``timeout``.
        """
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            # Keep the sentinel visible to any later reader
            self._queue.put(_CLOSED)
            return None
        return item

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.get()
            if event is None:
                return
            yield event


__all__ = [
    "ProgressEvent",
    "EventChannel",
    "INIT",
    "PUB_START",
    "SOURCE_TRY",
    "SOURCE_DONE",
    "PUB_DONE",
    "PROGRESS",
    "ERROR",
    "COMPLETE",
]
