"""Background tailer for an LTSV log file.

The tailer owns one reader, one codec and one duplicate-point modifier per run.
Only the driver thread touches them; the lock guards the start/stop
transition alone.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ltsv_tail.core.config import SAMPLE_CONFIG
from ltsv_tail.core.logging import get_logger, set_enabled
from ltsv_tail.core.metrics import PARSE_ERRORS, READ_ERRORS
from ltsv_tail.ingest.codec import LineCodec, LineParseError
from ltsv_tail.ingest.dedupe import build_modifier
from ltsv_tail.ingest.emitter import PointEmitter
from ltsv_tail.ingest.reader import LineReader, NamedPipeReader, RotatingFileReader
from ltsv_tail.ingest.sinks import PointSink
from ltsv_tail.ingest.watcher import FileWatcher

if TYPE_CHECKING:
    from ltsv_tail.core.config import Settings

logger = get_logger(__name__)


class LtsvLogTailer:
    """Read an LTSV log file in a background thread and push points to a sink."""

    description = "Read a log file in LTSV (Labeled Tab-separated Values) format"

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self._reader: LineReader | None = None
        self._codec: LineCodec | None = None
        self._emitter: PointEmitter | None = None
        self._watcher: FileWatcher | None = None

    @staticmethod
    def sample_config() -> str:
        return SAMPLE_CONFIG

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self, sink: PointSink) -> None:
        """Open the log file and start the driver thread.

        Raises OSError when the file cannot be opened and ``must_exist`` is set;
        no thread is started in that case.
        """
        settings = self.settings
        with self._lock:
            if self._thread is not None:
                if self._thread.is_alive():
                    raise RuntimeError(f"tailer for {settings.path} is already running")
                # the previous driver ended on its own or was stopped from a sink
                self._reap()
            set_enabled(settings.enable_logging)
            self._codec = LineCodec.from_settings(settings)
            self._emitter = PointEmitter(
                sink,
                build_modifier(settings.duplicate_points_method, settings.uniq_tag),
                settings.default_tags,
            )
            reader: LineReader
            if settings.pipe:
                reader = NamedPipeReader(
                    settings.path,
                    self._process_line,
                    max_line_size=settings.max_line_size,
                )
            else:
                reader = RotatingFileReader(
                    settings.path,
                    self._process_line,
                    reopen=settings.reopen,
                    max_line_size=settings.max_line_size,
                    seek_offset=settings.seek_offset,
                    seek_whence=settings.seek_whence,
                )
            try:
                reader.open()
            except FileNotFoundError:
                if settings.must_exist:
                    raise
                logger.info("Waiting for %s to be created", settings.path)
            self._reader = reader
            self._stop_event = threading.Event()
            self._wake = threading.Event()
            if settings.watch:
                self._watcher = FileWatcher(settings.path, self._wake.set)
                try:
                    self._watcher.start()
                except OSError:
                    reader.close()
                    self._watcher = None
                    raise
            self._thread = threading.Thread(
                target=self._run,
                name=f"ltsv-tail:{settings.path}",
                daemon=True,
            )
            self._thread.start()
        logger.info("Started a LTSV log reader, path: %s", settings.path)

    def stop(self) -> None:
        """Signal the driver to finish its current batch and wait for it to clean up.

        Safe to call before start, twice, or after the driver exited on its own.
        """
        if self._thread is threading.current_thread():
            # Called from a sink on the driver thread. The loop exits on its next
            # check; taking the lock here could deadlock with a stop() that joins us.
            self._stop_event.set()
            self._wake.set()
            return
        with self._lock:
            if self._thread is None:
                return
            self._stop_event.set()
            self._wake.set()
            self._reap()
        logger.info("Stopped a LTSV log reader, path: %s", self.settings.path)

    def _reap(self) -> None:
        """Join the driver and drop per-run state. Caller holds the lock."""
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join()
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the driver to exit on its own (e.g. with ``follow`` off); True when it has."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def gather(self, sink: PointSink) -> None:
        """Points are pushed from the driver thread, so there is nothing to collect here."""
        return None

    # Driver -----------------------------------------------------------

    def _run(self) -> None:
        reader = self._reader
        assert reader is not None
        watcher = self._watcher
        wait = self.settings.wait_seconds
        try:
            while not self._stop_event.is_set():
                consumed = self._read_once(reader)
                if consumed == 0:
                    if not self.settings.follow:
                        break
                    # wait_milliseconds = 0 busy-polls
                    self._wake.wait(wait)
                    self._wake.clear()
        finally:
            reader.close()
            if watcher is not None:
                watcher.stop()

    def _read_once(self, reader: LineReader) -> int:
        try:
            return reader.read()
        except FileNotFoundError:
            if not reader.has_opened:
                logger.debug("%s does not exist yet", reader.path)
                return 0
            # gone after it was opened once: removed, or a reopen after rotation failed
            READ_ERRORS.labels(str(reader.path)).inc()
            logger.warning(
                "%s disappeared, waiting for it to come back",
                reader.path,
                extra={"ctx_path": str(reader.path)},
            )
            return 0
        except OSError as exc:
            READ_ERRORS.labels(str(reader.path)).inc()
            logger.warning(
                "error while reading from %s, error: %s",
                reader.path,
                exc,
                extra={"ctx_path": str(reader.path)},
            )
            return 0

    def _process_line(self, line: str) -> None:
        codec = self._codec
        emitter = self._emitter
        assert codec is not None and emitter is not None
        try:
            point = codec.decode(line)
        except LineParseError as exc:
            PARSE_ERRORS.labels(str(self.settings.path)).inc()
            logger.warning(
                "error while parsing a line from %s, error: %s",
                self.settings.path,
                exc,
                extra={"ctx_path": str(self.settings.path)},
            )
            return
        emitter.emit(point)


__all__ = ["LtsvLogTailer"]
