"""JSON lines encoder for points."""

from __future__ import annotations

import math

import orjson

from ltsv_tail.models.point import Point
from ltsv_tail.utils.time import format_rfc3339_ns


def encode_json(point: Point) -> str:
    """Encode a point as a single-line JSON object.

    Non-finite floats have no JSON form and are emitted as strings.
    """
    fields = {
        key: (repr(value) if isinstance(value, float) and not math.isfinite(value) else value)
        for key, value in point.fields.items()
    }
    payload = {
        "measurement": point.measurement,
        "time": format_rfc3339_ns(point.timestamp_ns),
        "timestamp": point.timestamp_ns,
        "fields": fields,
        "tags": point.tags,
    }
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode("utf-8")


__all__ = ["encode_json"]
