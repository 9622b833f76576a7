"""Hand decoded points to a sink after duplicate handling."""

from __future__ import annotations

from typing import Mapping

from ltsv_tail.core.metrics import POINTS_EMITTED
from ltsv_tail.ingest.dedupe import DuplicatePointModifier, NoOpModifier
from ltsv_tail.ingest.sinks import PointSink
from ltsv_tail.models.point import Point


class PointEmitter:
    """Apply default tags and the duplicate-point modifier, then forward to the sink."""

    def __init__(
        self,
        sink: PointSink,
        modifier: DuplicatePointModifier | None = None,
        default_tags: Mapping[str, str] | None = None,
    ) -> None:
        self.sink = sink
        self.modifier = modifier or NoOpModifier()
        self.default_tags = dict(default_tags or {})

    def emit(self, point: Point) -> None:
        for key, value in self.default_tags.items():
            point.tags.setdefault(key, value)
        self.modifier.modify(point)
        self.sink.add_point(point)
        POINTS_EMITTED.labels(point.measurement).inc()


__all__ = ["PointEmitter"]
