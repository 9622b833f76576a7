"""Point sinks."""

from __future__ import annotations

import threading
from typing import Callable, Protocol, TextIO, runtime_checkable

from ltsv_tail.core.logging import get_logger
from ltsv_tail.models.point import Point

logger = get_logger(__name__)

PointEncoder = Callable[[Point], str]


@runtime_checkable
class PointSink(Protocol):
    """Destination for emitted points; delivery is fire-and-forget."""

    def add_point(self, point: Point) -> None:
        ...


class InMemorySink:
    """Accumulate points in a list.

    Safe to read from another thread while a tailer is writing.
    """

    def __init__(self) -> None:
        self._points: list[Point] = []
        self._lock = threading.Lock()

    def add_point(self, point: Point) -> None:
        with self._lock:
            self._points.append(point)

    def points(self) -> list[Point]:
        with self._lock:
            return list(self._points)

    def clear(self) -> None:
        with self._lock:
            self._points.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)


class StreamSink:
    """Write one encoded point per line to a text stream."""

    def __init__(self, stream: TextIO, encoder: PointEncoder, flush: bool = True) -> None:
        self._stream = stream
        self._encoder = encoder
        self._flush = flush
        self._lock = threading.Lock()

    def add_point(self, point: Point) -> None:
        try:
            line = self._encoder(point)
        except ValueError as exc:
            logger.warning("Dropping point that cannot be encoded: %s", exc)
            return
        with self._lock:
            self._stream.write(line + "\n")
            if self._flush:
                self._stream.flush()


__all__ = ["PointSink", "PointEncoder", "InMemorySink", "StreamSink"]
