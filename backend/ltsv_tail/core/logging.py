"""Logging setup shared by the CLI and the tailer threads."""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

import orjson

PACKAGE_LOGGER = "ltsv_tail"
CONTEXT_PREFIX = "ctx_"
PLAIN_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.environ.get("LTSV_LOG_LEVEL", "INFO")


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    The driver thread name is included since every tailed file logs from its
    own thread. Attributes passed as ``extra={"ctx_path": ...}`` land in the
    payload without their prefix.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}",
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith(CONTEXT_PREFIX):
                payload[key[len(CONTEXT_PREFIX) :]] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def configure_logging(
    level: str | int = _DEFAULT_LEVEL,
    use_json: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Send root logging to ``stream`` (stderr by default); stdout carries emitted points."""
    logging.captureWarnings(True)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter() if use_json else logging.Formatter(PLAIN_FORMAT))
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def set_enabled(enabled: bool) -> None:
    """Quiet the package to warnings and errors when informational logging is disabled."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET if enabled else logging.WARNING)


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "configure_logging", "get_logger", "set_enabled"]
