"""Registry of input constructors owned by the host."""

from __future__ import annotations

from typing import Callable, Protocol

from ltsv_tail.core.config import Settings
from ltsv_tail.ingest.sinks import PointSink
from ltsv_tail.ingest.tailer import LtsvLogTailer


class Input(Protocol):
    description: str

    @property
    def running(self) -> bool:
        ...

    def start(self, sink: PointSink) -> None:
        ...

    def stop(self) -> None:
        ...

    def join(self, timeout: float | None = None) -> bool:
        ...

    def gather(self, sink: PointSink) -> None:
        ...


InputFactory = Callable[[Settings], Input]


class InputRegistry:
    """Map input names to constructors."""

    def __init__(self) -> None:
        self._factories: dict[str, InputFactory] = {}

    def register(self, name: str, factory: InputFactory) -> None:
        if name in self._factories:
            raise ValueError(f"input {name!r} is already registered")
        self._factories[name] = factory

    def create(self, name: str, settings: Settings) -> Input:
        try:
            factory = self._factories[name]
        except KeyError:
            raise KeyError(f"unknown input {name!r}; known: {', '.join(self.names())}") from None
        return factory(settings)

    def names(self) -> list[str]:
        return sorted(self._factories)


def default_registry() -> InputRegistry:
    registry = InputRegistry()
    registry.register("ltsv_log", LtsvLogTailer)
    registry.register("tail", LtsvLogTailer)
    return registry


__all__ = ["Input", "InputFactory", "InputRegistry", "default_registry"]
