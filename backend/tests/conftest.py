"""Test fixtures for ltsv-tail."""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

SAMPLE_LINE = (
    "time:2016-03-03T13:58:57+00:00\thost:localhost\thttp_host:localhost\tscheme:http"
    "\tremote_addr:127.0.0.1\tremote_user:-\ttime_local:03/Mar/2016:13:58:57\t+0000"
    "\trequest:GET / HTTP/1.1\tstatus:200\tbody_bytes_sent:612\thttp_referer:-"
    "\thttp_user_agent:curl/7.29.0\thttp_x_forwarded_for:-\trequest_time:0.000"
    "\tupstream_response_time:-\tupstream_http_content_type:-\tupstream_status:-"
    "\tupstream_cache_status:-"
)

NGINX_TAGS = [
    "host",
    "http_host",
    "scheme",
    "remote_addr",
    "remote_user",
    "request",
    "status",
    "http_referer",
    "http_user_agent",
]


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings, env and root logging between tests."""
    for key in list(os.environ):
        if key.startswith("LTSV_"):
            monkeypatch.delenv(key, raising=False)

    from ltsv_tail.core import config

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("ltsv_tail").setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def sample_line() -> str:
    return SAMPLE_LINE


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    path = tmp_path / "access.ltsv.log"
    path.write_text("")
    return path


@pytest.fixture
def make_settings(log_path: Path):
    """Factory for Settings matching the nginx sample, with a fast wait interval."""
    from ltsv_tail.core.config import Settings

    def _make(**overrides) -> Settings:
        data = {
            "measurement": "nginx_access",
            "path": log_path,
            "time_label": "time",
            "time_format": "%Y-%m-%dT%H:%M:%S%z",
            "int_fields": ["body_bytes_sent"],
            "float_fields": ["request_time"],
            "tag_labels": NGINX_TAGS,
            "wait_milliseconds": 5,
        }
        data.update(overrides)
        return Settings(**data)

    return _make


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Return a helper polling a predicate until it is true or a timeout expires."""
    return _wait_until


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
