"""Incremental line readers for a growing log file or a named pipe."""

from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Callable, Protocol

from ltsv_tail.core.logging import get_logger
from ltsv_tail.core.metrics import LINES_READ, ROTATIONS

logger = get_logger(__name__)

LineCallback = Callable[[str], None]

PIPE_CHUNK_SIZE = 64 * 1024


class LineReader(Protocol):
    path: Path

    @property
    def is_open(self) -> bool:
        ...

    @property
    def has_opened(self) -> bool:
        ...

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...

    def read(self) -> int:
        ...


def _emit_line(raw: bytes, on_line: LineCallback, path_label: str) -> None:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    LINES_READ.labels(path_label).inc()
    on_line(raw.decode("utf-8", errors="replace"))


class RotatingFileReader:
    """Read every complete line appended to ``path`` since the previous read.

    The handle stays open between reads so the tail of a rotated file can still
    be drained after the path has been replaced. Rotation is inferred when the
    size reported for the path drops below the size seen on the previous read
    while staying above zero. A rotation where the new file has already grown
    past the old size before the check runs is not detected; the reader then
    carries on with the old handle.

    Only newline terminated lines are consumed. An unterminated remainder is
    left in place and picked up once the writer completes it.
    """

    def __init__(
        self,
        path: Path | str,
        on_line: LineCallback,
        *,
        reopen: bool = True,
        max_line_size: int = 0,
        seek_offset: int = 0,
        seek_whence: int = os.SEEK_SET,
    ) -> None:
        self.path = Path(path)
        self._on_line = on_line
        self._reopen = reopen
        self._max_line_size = max_line_size
        self._seek_offset = seek_offset
        self._seek_whence = seek_whence
        self._file: BinaryIO | None = None
        self._opened_once = False
        self._prev_size = 0
        self._path_label = str(self.path)

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def has_opened(self) -> bool:
        return self._opened_once

    @property
    def prev_size(self) -> int:
        return self._prev_size

    def open(self) -> None:
        """Open the path; the configured seek applies to the very first open only."""
        file = self.path.open("rb")
        if not self._opened_once and (self._seek_offset or self._seek_whence != os.SEEK_SET):
            try:
                file.seek(self._seek_offset, self._seek_whence)
            except OSError:
                file.close()
                raise
        self._file = file
        self._opened_once = True
        logger.debug("Opened %s at offset %s", self.path, file.tell())

    def close(self) -> None:
        if self._file is None:
            return
        file, self._file = self._file, None
        file.close()

    def reopen(self) -> None:
        self.close()
        self.open()

    def read(self) -> int:
        """Process available lines and return the number of bytes consumed.

        Raises OSError when the path cannot be stat'ed or opened; the previous
        size is updated to whatever was observed in any case.
        """
        # Stat the path rather than the handle: after a rotation they differ.
        size = os.stat(self.path).st_size
        consumed = 0
        try:
            if self._reopen and self._file is not None and 0 < size < self._prev_size:
                logger.info(
                    "Log rotation detected for %s (size %s < %s)",
                    self.path,
                    size,
                    self._prev_size,
                    extra={"ctx_path": self._path_label},
                )
                ROTATIONS.labels(self._path_label).inc()
                consumed += self._drain(final=True)
                self.reopen()
            consumed += self._drain()
        finally:
            self._prev_size = size
        return consumed

    def _drain(self, final: bool = False) -> int:
        if self._file is None:
            self.open()
        file = self._file
        assert file is not None
        limit = self._max_line_size or -1
        consumed = 0
        while True:
            start = file.tell()
            raw = file.readline(limit)
            if not raw:
                break
            if not raw.endswith(b"\n"):
                oversized = self._max_line_size and len(raw) >= self._max_line_size
                if not (final or oversized):
                    file.seek(start)
                    break
            consumed += len(raw)
            self._emit(raw)
        return consumed

    def _emit(self, raw: bytes) -> None:
        _emit_line(raw, self._on_line, self._path_label)


class NamedPipeReader:
    """Read lines from a named pipe (mkfifo) without blocking the driver.

    A FIFO has no size and no offset, so neither rotation detection nor the
    initial seek applies. The read end is opened non-blocking and kept open
    while writers come and go. An unterminated line is held until its newline
    arrives, or flushed once the last writer has closed the pipe.
    """

    def __init__(self, path: Path | str, on_line: LineCallback, *, max_line_size: int = 0) -> None:
        self.path = Path(path)
        self._on_line = on_line
        self._max_line_size = max_line_size
        self._fd: int | None = None
        self._opened_once = False
        self._pending = bytearray()
        self._path_label = str(self.path)

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    @property
    def has_opened(self) -> bool:
        return self._opened_once

    def open(self) -> None:
        self._fd = os.open(self.path, os.O_RDONLY | os.O_NONBLOCK)
        self._opened_once = True
        logger.debug("Opened pipe %s", self.path)

    def close(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        self._pending.clear()
        os.close(fd)

    def read(self) -> int:
        """Process whatever the writers have sent and return the number of bytes received."""
        if self._fd is None:
            self.open()
        fd = self._fd
        assert fd is not None
        received = 0
        while True:
            try:
                chunk = os.read(fd, PIPE_CHUNK_SIZE)
            except BlockingIOError:
                # a writer is connected but has nothing more for now
                break
            if not chunk:
                # no writer left
                self._take_lines(final=True)
                break
            received += len(chunk)
            self._pending += chunk
            self._take_lines()
        return received

    def _take_lines(self, final: bool = False) -> None:
        pending = self._pending
        limit = self._max_line_size
        while pending:
            end = pending.find(b"\n") + 1
            if limit and (end == 0 or end > limit) and len(pending) >= limit:
                end = limit
            if end == 0:
                if not final:
                    break
                end = len(pending)
            raw = bytes(pending[:end])
            del pending[:end]
            _emit_line(raw, self._on_line, self._path_label)


__all__ = ["LineCallback", "LineReader", "NamedPipeReader", "RotatingFileReader"]
