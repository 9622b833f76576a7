"""LTSV line decoding into metric points."""

from __future__ import annotations

import math
import re
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping

from ltsv_tail.models.point import FieldValue, Point
from ltsv_tail.utils.time import parse_time

TERM_SEPARATOR = "\t"
LABEL_SEPARATOR = ":"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class FieldKind(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"


class LineParseError(ValueError):
    """Raised when a term of a line cannot be converted."""

    def __init__(self, label: str, value: str, reason: str) -> None:
        super().__init__(f"label {label!r}: {reason}: {value!r}")
        self.label = label
        self.value = value


FieldSpec = Mapping[str, FieldKind]


def build_field_spec(
    str_fields: Iterable[str] = (),
    int_fields: Iterable[str] = (),
    float_fields: Iterable[str] = (),
    bool_fields: Iterable[str] = (),
) -> FieldSpec:
    """Build a read-only label to kind mapping; a label may belong to one kind only."""
    spec: dict[str, FieldKind] = {}
    for kind, labels in (
        (FieldKind.STRING, str_fields),
        (FieldKind.INTEGER, int_fields),
        (FieldKind.FLOAT, float_fields),
        (FieldKind.BOOLEAN, bool_fields),
    ):
        for label in labels:
            existing = spec.get(label)
            if existing is not None and existing is not kind:
                raise ValueError(f"field {label!r} declared as both {existing.value} and {kind.value}")
            spec[label] = kind
    return MappingProxyType(spec)


def build_tag_spec(labels: Iterable[str] = ()) -> frozenset[str]:
    return frozenset(labels)


def split_term(term: str) -> tuple[str, str]:
    """Split a term on its first colon; a term without one is a label with an empty value."""
    label, _, value = term.partition(LABEL_SEPARATOR)
    return label, value


def parse_int(value: str) -> int:
    if not _INT_RE.fullmatch(value):
        raise ValueError("invalid syntax")
    result = int(value)
    if result < _INT64_MIN or result > _INT64_MAX:
        raise ValueError("value out of range")
    return result


def parse_float(value: str) -> float:
    if value != value.strip() or "_" in value:
        raise ValueError("invalid syntax")
    result = float(value)
    if math.isinf(result) and "inf" not in value.lower():
        raise ValueError("value out of range")
    return result


def parse_bool(value: str) -> bool:
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError("invalid syntax")


_CONVERTERS = {
    FieldKind.STRING: str,
    FieldKind.INTEGER: parse_int,
    FieldKind.FLOAT: parse_float,
    FieldKind.BOOLEAN: parse_bool,
}


class LineCodec:
    """Decode tab separated ``label:value`` lines using static classification rules.

    The time label is checked first, then field labels, then tag labels. Terms
    matching none of them are ignored. A line without a time term yields a point
    at the epoch (timestamp 0), which cannot be told apart from an explicit
    epoch timestamp.
    """

    def __init__(
        self,
        measurement: str,
        time_label: str,
        time_format: str,
        field_spec: FieldSpec | None = None,
        tag_spec: Iterable[str] | None = None,
    ) -> None:
        self.measurement = measurement
        self.time_label = time_label
        self.time_format = time_format
        self.field_spec = field_spec if field_spec is not None else build_field_spec()
        self.tag_spec = build_tag_spec(tag_spec or ())

    @classmethod
    def from_settings(cls, settings) -> "LineCodec":
        return cls(
            measurement=settings.measurement,
            time_label=settings.time_label,
            time_format=settings.time_format,
            field_spec=build_field_spec(
                settings.str_fields,
                settings.int_fields,
                settings.float_fields,
                settings.bool_fields,
            ),
            tag_spec=settings.tag_labels,
        )

    def decode(self, line: str) -> Point:
        """Decode one line; raises LineParseError and emits nothing on any conversion failure."""
        timestamp_ns = 0
        fields: dict[str, FieldValue] = {}
        tags: dict[str, str] = {}
        for term in line.split(TERM_SEPARATOR):
            label, value = split_term(term)
            if label == self.time_label:
                try:
                    timestamp_ns = parse_time(value, self.time_format)
                except ValueError as exc:
                    raise LineParseError(label, value, f"bad time ({exc})") from exc
            elif label in self.field_spec:
                kind = self.field_spec[label]
                try:
                    fields[label] = _CONVERTERS[kind](value)
                except ValueError as exc:
                    raise LineParseError(label, value, f"not a valid {kind.value} ({exc})") from exc
            elif label in self.tag_spec:
                tags[label] = value
        return Point(measurement=self.measurement, fields=fields, tags=tags, timestamp_ns=timestamp_ns)


__all__ = [
    "FieldKind",
    "FieldSpec",
    "LineCodec",
    "LineParseError",
    "build_field_spec",
    "build_tag_spec",
    "split_term",
]
