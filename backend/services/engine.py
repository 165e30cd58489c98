"""Contract between the playback controller and a software streaming engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable, Protocol

from models import StreamProtocol


class EngineEvent(StrEnum):
    READY = "ready"    # manifest parsed / stream initialised
    ERROR = "error"    # payload: EngineError
    ENDED = "ended"


@dataclass(frozen=True)
class EngineError:
    fatal: bool
    message: str
    details: Any = None


class MediaEngine(Protocol):
    def on(self, event: EngineEvent, handler: Callable[..., None]) -> None: ...

    def attach(self, surface: Any) -> None: ...

    def load(self, url: str) -> None: ...

    def release(self) -> None:
        """Stop network activity and detach. Must be idempotent."""
        ...


EngineFactory = Callable[[StreamProtocol], MediaEngine]
