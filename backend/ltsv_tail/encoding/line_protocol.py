"""InfluxDB line protocol encoder."""

from __future__ import annotations

import math

from ltsv_tail.models.point import FieldValue, Point

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ ", "\n": r"\n"})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ ", "\n": r"\n"})
_STRING_ESCAPES = str.maketrans({'"': r"\"", "\\": "\\\\"})


def _escape_key(value: str) -> str:
    return value.translate(_KEY_ESCAPES)


def _format_field(value: FieldValue) -> str:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"line protocol cannot encode {value!r}")
        return repr(value)
    return '"' + str(value).translate(_STRING_ESCAPES) + '"'


def encode_line_protocol(point: Point) -> str:
    """Encode a point as one line of line protocol (without trailing newline)."""
    if not point.fields:
        raise ValueError(f"point of {point.measurement!r} has no fields")
    parts = [point.measurement.translate(_MEASUREMENT_ESCAPES)]
    for key in sorted(point.tags):
        value = point.tags[key]
        # empty tag values are not representable
        if value == "":
            continue
        parts.append(f"{_escape_key(key)}={_escape_key(value)}")
    head = ",".join(parts)
    fields = ",".join(f"{_escape_key(key)}={_format_field(value)}" for key, value in point.fields.items())
    return f"{head} {fields} {point.timestamp_ns}"


__all__ = ["encode_line_protocol"]
