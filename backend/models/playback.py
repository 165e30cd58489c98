from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class StreamProtocol(StrEnum):
    HLS = "hls"
    DASH = "dash"
    NONE = "none"


class PlaybackStrategy(StrEnum):
    """Closed set of ways a resolved source can be played on a surface."""

    SOFTWARE_HLS = "software_hls"
    NATIVE_HLS = "native_hls"
    SOFTWARE_DASH = "software_dash"
    UNSUPPORTED = "unsupported"


class PlaybackState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class SessionPhase(StrEnum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ResolvedSource:
    protocol: StreamProtocol
    url: str | None = None


@dataclass
class PlaybackSession:
    """
    One binding of a resolved source to a rendering surface.

    Owned by AdaptivePlaybackController and never persisted. `engine` is None
    for the native path and for sessions that failed before initialisation.
    """

    protocol: StreamProtocol
    strategy: PlaybackStrategy
    url: str | None
    engine: Any | None = None
    phase: SessionPhase = SessionPhase.LOADING
    error: str | None = None
    autoplay_blocked: bool = False
    notice: str | None = None
    listeners: list[tuple[str, Any]] = field(default_factory=list)
