"""Filesystem notifications for the tailed file."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

ChangeCallback = Callable[[], None]


def _normalize(path: str | bytes | Path) -> str:
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    return os.path.abspath(os.fspath(path))


class FileEventHandler(FileSystemEventHandler):
    """Call back when an event touches the watched file."""

    def __init__(self, path: Path, callback: ChangeCallback) -> None:
        super().__init__()
        self.target = _normalize(path)
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:  # pragma: no cover - requires filesystem
        if event.is_directory:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        if any(_normalize(p) == self.target for p in paths):
            self.callback()


class FileWatcher:
    """Watch the directory holding one file; rotation replaces the file so its parent is watched."""

    def __init__(self, path: Path, callback: ChangeCallback) -> None:
        self.path = path.expanduser().absolute()
        self._handler = FileEventHandler(self.path, callback)
        self._observer: BaseObserver | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            observer = Observer()
            observer.schedule(self._handler, str(self.path.parent), recursive=False)
            observer.daemon = True
            observer.start()
            self._observer = observer

    def stop(self) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
            if observer is None:
                return
            observer.stop()
            observer.join(timeout=5)


__all__ = ["FileWatcher", "FileEventHandler", "ChangeCallback"]
