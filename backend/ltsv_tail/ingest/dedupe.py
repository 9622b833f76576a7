"""Duplicate-point modifiers.

Downstream stores key points on measurement, tag set and timestamp, so two
lines logged at the same instant overwrite each other. A modifier compares each
point with the one before it and perturbs it so consecutive points stay
distinct. Only the immediately preceding point is remembered: the
``add_uniq_tag`` and ``increment_time`` methods expect log lines sorted by
timestamp in non-decreasing order. Out-of-order input through
``increment_time`` still comes out strictly increasing, but the timeline is
distorted.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from ltsv_tail.models.point import Point


class DuplicatePointsMethod(str, Enum):
    ADD_UNIQ_TAG = "add_uniq_tag"
    INCREMENT_TIME = "increment_time"
    NO_OP = "no_op"

    @classmethod
    def parse(cls, value: str) -> "DuplicatePointsMethod":
        normalized = value.strip().lower()
        if normalized in ("none", ""):
            return cls.NO_OP
        return cls(normalized)


@runtime_checkable
class DuplicatePointModifier(Protocol):
    def modify(self, point: Point) -> None:
        """Adjust the point's timestamp or tags in place."""
        ...


class AddUniqTagModifier:
    """Tag the 2nd, 3rd, ... point of a run of equal timestamps with "1", "2", ..."""

    def __init__(self, uniq_tag: str) -> None:
        self.uniq_tag = uniq_tag
        self._prev_time: int | None = None
        self._dup_count = 0

    def modify(self, point: Point) -> None:
        if point.timestamp_ns == self._prev_time:
            self._dup_count += 1
            point.tags[self.uniq_tag] = str(self._dup_count)
        else:
            self._dup_count = 0
            self._prev_time = point.timestamp_ns


class IncrementTimeModifier:
    """Push a timestamp that is not after the previous one to previous + 1ns."""

    def __init__(self) -> None:
        self._prev_time: int | None = None

    def modify(self, point: Point) -> None:
        if self._prev_time is not None and point.timestamp_ns <= self._prev_time:
            point.timestamp_ns = self._prev_time + 1
        self._prev_time = point.timestamp_ns


class NoOpModifier:
    def modify(self, point: Point) -> None:
        return None


def build_modifier(method: DuplicatePointsMethod | str, uniq_tag: str = "uniq") -> DuplicatePointModifier:
    """Create a fresh modifier with its own memory for one run."""
    if isinstance(method, str) and not isinstance(method, DuplicatePointsMethod):
        method = DuplicatePointsMethod.parse(method)
    if method is DuplicatePointsMethod.ADD_UNIQ_TAG:
        if not uniq_tag:
            raise ValueError("add_uniq_tag needs a non-empty uniq tag name")
        return AddUniqTagModifier(uniq_tag)
    if method is DuplicatePointsMethod.INCREMENT_TIME:
        return IncrementTimeModifier()
    return NoOpModifier()


__all__ = [
    "DuplicatePointsMethod",
    "DuplicatePointModifier",
    "AddUniqTagModifier",
    "IncrementTimeModifier",
    "NoOpModifier",
    "build_modifier",
]
