"""Prometheus metrics instrumentation."""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    generate_latest,
    start_http_server,
)

REGISTRY = CollectorRegistry()

LINES_READ = Counter(
    "ltsv_lines_read_total",
    "Complete lines read from the log file",
    labelnames=("path",),
    registry=REGISTRY,
)

POINTS_EMITTED = Counter(
    "ltsv_points_emitted_total",
    "Points handed to the sink",
    labelnames=("measurement",),
    registry=REGISTRY,
)

PARSE_ERRORS = Counter(
    "ltsv_parse_errors_total",
    "Lines dropped because a term could not be decoded",
    labelnames=("path",),
    registry=REGISTRY,
)

READ_ERRORS = Counter(
    "ltsv_read_errors_total",
    "Failed stat/open/read attempts",
    labelnames=("path",),
    registry=REGISTRY,
)

ROTATIONS = Counter(
    "ltsv_rotations_total",
    "Detected log rotations",
    labelnames=("path",),
    registry=REGISTRY,
)


def metrics_text() -> bytes:
    """Return metrics in the Prometheus text exposition format."""
    return generate_latest(REGISTRY)


def serve_metrics(port: int, addr: str = "127.0.0.1") -> None:
    """Expose metrics over HTTP from a background thread."""
    start_http_server(port, addr=addr, registry=REGISTRY)


__all__ = [
    "REGISTRY",
    "LINES_READ",
    "POINTS_EMITTED",
    "PARSE_ERRORS",
    "READ_ERRORS",
    "ROTATIONS",
    "metrics_text",
    "serve_metrics",
]
