"""Per-scan event stream."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from dusk.models.scan_result import ScanItem, ScanResult

log = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of events a scan publishes."""

    PROGRESS = "progress"
    ITEM = "item"
    COMPLETE = "complete"
    ERROR = "error"


_TERMINAL = frozenset({EventKind.COMPLETE, EventKind.ERROR})


@dataclass(frozen=True, slots=True)
class ScanEvent:
    """One event on a scan channel.

    ``data`` is the wire payload: ``{"message": ...}`` for progress and
    error events, a ScanItem dict for items and a ScanResult dict on
    completion.
    """

    kind: EventKind
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.kind in _TERMINAL

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.kind.value, "data": self.data}


class ChannelClosed(Exception):
    """Raised by ``EventChannel.get`` once the terminal event has been consumed."""


class EventChannel:
    """Single-consumer, push-only channel carrying the events of one scan.

    Producers may publish from any thread. Exactly one terminal event
    (``complete`` or ``error``) is delivered; anything published after it is
    dropped. After ``disconnect()`` every publish is a no-op.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[ScanEvent] = queue.Queue()
        self._lock = threading.Lock()
        self._terminated = False
        self._disconnected = False
        self._drained = False

    @property
    def closed(self) -> bool:
        """True once a terminal event was published or the consumer left."""
        with self._lock:
            return self._terminated or self._disconnected

    @property
    def disconnected(self) -> bool:
        with self._lock:
            return self._disconnected

    def publish(self, event: ScanEvent) -> bool:
        """Enqueue *event*. Returns False if it was dropped."""
        with self._lock:
            if self._disconnected:
                return False
            if self._terminated:
                log.debug("Dropping %s event published after terminal event", event.kind.value)
                return False
            if event.is_terminal:
                self._terminated = True
            self._queue.put(event)
        return True

    def progress(self, message: str) -> bool:
        return self.publish(ScanEvent(EventKind.PROGRESS, {"message": message}))

    def item(self, scan_item: ScanItem) -> bool:
        return self.publish(ScanEvent(EventKind.ITEM, scan_item.to_dict()))

    def complete(self, result: ScanResult) -> bool:
        return self.publish(ScanEvent(EventKind.COMPLETE, result.to_dict()))

    def error(self, message: str) -> bool:
        return self.publish(ScanEvent(EventKind.ERROR, {"message": message}))

    def disconnect(self) -> None:
        """Called by the consumer when it stops listening."""
        with self._lock:
            self._disconnected = True

    def get(self, timeout: float | None = None) -> ScanEvent:
        """Return the next event, blocking until one is available.

        Raises:
            ChannelClosed: if the terminal event was already returned.
            queue.Empty: if *timeout* elapsed with no event.
        """
        if self._drained:
            raise ChannelClosed("channel already delivered its terminal event")
        event = self._queue.get(timeout=timeout)
        if event.is_terminal:
            self._drained = True
        return event

    def __iter__(self) -> Iterator[ScanEvent]:
        while not self._drained:
            yield self.get()
