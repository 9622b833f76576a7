"""Metric point produced from one log line."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

from ltsv_tail.utils.time import ns_to_datetime

FieldValue = Union[str, int, float, bool]


@dataclass(slots=True)
class Point:
    """A structured point handed to a sink.

    Attributes:
        measurement: Measurement name the point belongs to.
        fields: Typed values keyed by label.
        tags: String classification dimensions keyed by label.
        timestamp_ns: Nanoseconds since the Unix epoch; 0 when the line had no time term.
    """

    measurement: str
    fields: dict[str, FieldValue] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    timestamp_ns: int = 0

    @property
    def time(self) -> datetime:
        return ns_to_datetime(self.timestamp_ns)


__all__ = ["Point", "FieldValue"]
