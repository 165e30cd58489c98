"""Rendering surfaces a PlaybackSession can be bound to."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, Protocol

logger = logging.getLogger(__name__)

HLS_MIME_TYPE = "application/vnd.apple.mpegurl"
DASH_MIME_TYPE = "application/dash+xml"

SurfaceListener = Callable[..., None]


class AutoplayBlocked(Exception):
    """play() was refused without user interaction."""


class RenderSurface(Protocol):
    """
    Media-element-like target.

    `src` and the `loadedmetadata` / `error` events are only used when the
    surface plays HLS natively; software engines push decoded frames through
    render().
    """

    src: str | None

    def can_play_type(self, mime_type: str) -> bool: ...

    def add_listener(self, event: str, handler: SurfaceListener) -> None: ...

    def remove_listener(self, event: str, handler: SurfaceListener) -> None: ...

    async def play(self) -> None: ...

    def render(self, frame: Any) -> None: ...


class HeadlessSurface:
    """
    Surface without a screen: keeps the latest decoded frame and counters.

    `native_types` lists the MIME types the surface claims to play itself.
    With `autoplay_allowed=False`, play() raises AutoplayBlocked the way a
    browser does without a user gesture.
    """

    def __init__(
        self,
        *,
        native_types: Iterable[str] = (),
        autoplay_allowed: bool = True,
    ) -> None:
        self._src: str | None = None
        self._native_types = set(native_types)
        self._listeners: dict[str, list[SurfaceListener]] = defaultdict(list)
        self.autoplay_allowed = autoplay_allowed
        self.playing = False
        self.frames_rendered = 0
        self.last_frame: Any | None = None

    @property
    def src(self) -> str | None:
        return self._src

    @src.setter
    def src(self, value: str | None) -> None:
        self._src = value
        if value is None:
            self.playing = False

    @property
    def frame_size(self) -> tuple[int, int] | None:
        if self.last_frame is None:
            return None
        return int(getattr(self.last_frame, "width", 0) or 0), int(getattr(self.last_frame, "height", 0) or 0)

    def can_play_type(self, mime_type: str) -> bool:
        return mime_type in self._native_types

    def add_listener(self, event: str, handler: SurfaceListener) -> None:
        self._listeners[event].append(handler)

    def remove_listener(self, event: str, handler: SurfaceListener) -> None:
        handlers = self._listeners.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            pass
        if not handlers:
            self._listeners.pop(event, None)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, ()))
        return sum(len(h) for h in self._listeners.values())

    def dispatch(self, event: str, *args: Any) -> None:
        """Fire a media event (e.g. `loadedmetadata`) at the registered listeners."""
        for handler in list(self._listeners.get(event, ())):
            handler(*args)

    async def play(self) -> None:
        if not self.autoplay_allowed:
            raise AutoplayBlocked("play() failed because the user didn't interact with the document first")
        self.playing = True

    def render(self, frame: Any) -> None:
        self.last_frame = frame
        self.frames_rendered += 1

    def reset(self) -> None:
        self.src = None
        self.last_frame = None
        self.frames_rendered = 0
