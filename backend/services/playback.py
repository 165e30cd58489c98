"""
Adaptive playback controller.

Owns at most one PlaybackSession per surface and drives it through
idle -> loading -> ready, with failed reachable from loading and ready.
unbind() returns to idle from any state and is the only way an engine is
released outside of a fatal error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable
from urllib.parse import urlsplit

from models import (
    PlaybackSession,
    PlaybackState,
    PlaybackStrategy,
    ResolvedSource,
    SessionPhase,
    StreamProtocol,
)
from services.engine import EngineError, EngineEvent, EngineFactory, MediaEngine
from services.surface import HLS_MIME_TYPE, RenderSurface

logger = logging.getLogger(__name__)

INVALID_SOURCE_MESSAGE = "Invalid video source URL"
NO_SOURCE_MESSAGE = "No video source provided."
UNSUPPORTED_MESSAGE = "Unsupported playback path for this stream."
INIT_FAILED_MESSAGE = "Failed to initialize the video player."
AUTOPLAY_BLOCKED_NOTICE = "Failed to play the video. Try clicking play."

_FATAL_MESSAGES = {
    PlaybackStrategy.SOFTWARE_HLS: "Error loading the video stream.",
    PlaybackStrategy.NATIVE_HLS: "Error loading the video.",
    PlaybackStrategy.SOFTWARE_DASH: "Error loading the DASH stream.",
}

_PHASE_TO_STATE = {
    SessionPhase.LOADING: PlaybackState.LOADING,
    SessionPhase.READY: PlaybackState.READY,
    SessionPhase.ERROR: PlaybackState.FAILED,
}

StateListener = Callable[["AdaptivePlaybackController"], None]


def is_valid_source_url(url: str | None) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc) and " " not in url


def select_strategy(
    resolved: ResolvedSource,
    surface: RenderSurface,
    *,
    software_hls_supported: bool,
) -> PlaybackStrategy:
    if resolved.protocol is StreamProtocol.HLS:
        if software_hls_supported:
            return PlaybackStrategy.SOFTWARE_HLS
        if surface.can_play_type(HLS_MIME_TYPE):
            return PlaybackStrategy.NATIVE_HLS
        return PlaybackStrategy.UNSUPPORTED
    if resolved.protocol is StreamProtocol.DASH:
        return PlaybackStrategy.SOFTWARE_DASH
    return PlaybackStrategy.UNSUPPORTED


def _default_engine_factory(protocol: StreamProtocol) -> MediaEngine:
    from services.av_engine import create_engine  # noqa: PLC0415

    return create_engine(protocol)


def _default_software_hls_supported() -> bool:
    from services.av_engine import software_hls_supported  # noqa: PLC0415

    return software_hls_supported()


class AdaptivePlaybackController:
    def __init__(
        self,
        *,
        engine_factory: EngineFactory | None = None,
        software_hls_supported: Callable[[], bool] | None = None,
    ) -> None:
        self._engine_factory = engine_factory or _default_engine_factory
        self._software_hls_supported = software_hls_supported or _default_software_hls_supported
        self._session: PlaybackSession | None = None
        self._surface: RenderSurface | None = None
        self._autoplay_task: asyncio.Task[None] | None = None
        self._listeners: list[StateListener] = []
        self.engines_created = 0

    @property
    def session(self) -> PlaybackSession | None:
        return self._session

    @property
    def surface(self) -> RenderSurface | None:
        return self._surface

    @property
    def state(self) -> PlaybackState:
        if self._session is None:
            return PlaybackState.IDLE
        return _PHASE_TO_STATE[self._session.phase]

    @property
    def error(self) -> str | None:
        return self._session.error if self._session else None

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def bind(self, surface: RenderSurface, resolved: ResolvedSource) -> PlaybackSession:
        """
        Start a new session for `resolved` on `surface`.

        Any previous session is released first. Validation and strategy
        failures end in the failed state without creating an engine.
        """
        if self._session is not None:
            self.unbind()

        self._surface = surface
        if resolved.protocol is StreamProtocol.NONE:
            session = PlaybackSession(resolved.protocol, PlaybackStrategy.UNSUPPORTED, None)
            self._session = session
            self._fail(session, NO_SOURCE_MESSAGE)
            return session

        url = resolved.url
        if url is None or not is_valid_source_url(url):
            logger.error("[playback] Invalid %s URL: %r", resolved.protocol, resolved.url)
            session = PlaybackSession(resolved.protocol, PlaybackStrategy.UNSUPPORTED, resolved.url)
            self._session = session
            self._fail(session, INVALID_SOURCE_MESSAGE)
            return session

        strategy = select_strategy(resolved, surface, software_hls_supported=self._software_hls_supported())
        session = PlaybackSession(resolved.protocol, strategy, resolved.url)
        self._session = session
        logger.info("[playback] Binding %s via %s: %s", resolved.protocol, strategy, resolved.url)

        if strategy in (PlaybackStrategy.SOFTWARE_HLS, PlaybackStrategy.SOFTWARE_DASH):
            self._start_engine(session, surface, url)
        elif strategy is PlaybackStrategy.NATIVE_HLS:
            self._start_native(session, surface)
        else:
            self._fail(session, UNSUPPORTED_MESSAGE)
            return session

        if self._session is session and session.phase is SessionPhase.LOADING:
            self._notify()
        return session

    def unbind(self) -> None:
        """Tear down the current session. Safe from any state, including idle."""
        session = self._session
        if session is None:
            return
        self._session = None
        if self._autoplay_task is not None:
            self._autoplay_task.cancel()
            self._autoplay_task = None
        self._release(session)
        logger.info("[playback] Unbound %s session (%s)", session.protocol, session.strategy)
        self._notify()

    def _start_engine(self, session: PlaybackSession, surface: RenderSurface, url: str) -> None:
        try:
            engine = self._engine_factory(session.protocol)
        except Exception as e:  # noqa: BLE001
            logger.error("[playback] Engine creation failed: %s", e, exc_info=True)
            self._fail(session, INIT_FAILED_MESSAGE)
            return
        self.engines_created += 1
        session.engine = engine
        engine.on(EngineEvent.READY, lambda *_: self._on_ready(session))
        engine.on(EngineEvent.ERROR, lambda err: self._on_engine_error(session, err))
        engine.on(EngineEvent.ENDED, lambda *_: logger.info("[playback] Stream ended: %s", session.url))
        try:
            engine.attach(surface)
            engine.load(url)
        except Exception as e:  # noqa: BLE001
            logger.error("[playback] Video player setup error: %s", e, exc_info=True)
            self._fail(session, INIT_FAILED_MESSAGE)

    def _start_native(self, session: PlaybackSession, surface: RenderSurface) -> None:
        def on_loaded(*_: Any) -> None:
            self._on_ready(session)

        def on_error(*args: Any) -> None:
            logger.error("[playback] Video element error: %s", args[0] if args else None)
            self._on_engine_error(session, EngineError(True, "media element error", args))

        session.listeners = [("loadedmetadata", on_loaded), ("error", on_error)]
        for event, handler in session.listeners:
            surface.add_listener(event, handler)
        surface.src = session.url

    def _on_ready(self, session: PlaybackSession) -> None:
        if session is not self._session or session.phase is not SessionPhase.LOADING:
            return
        session.phase = SessionPhase.READY
        logger.info("[playback] Ready: %s", session.url)
        self._notify()
        self._autoplay_task = asyncio.ensure_future(self._autoplay(session))

    async def _autoplay(self, session: PlaybackSession) -> None:
        surface = self._surface
        if surface is None:
            return
        try:
            await surface.play()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            if session is not self._session:
                return
            # Autoplay policy: stay ready, the user has to press play.
            logger.warning("[playback] Autoplay rejected: %s", e)
            session.autoplay_blocked = True
            session.notice = AUTOPLAY_BLOCKED_NOTICE
            self._notify()
        finally:
            if self._autoplay_task is asyncio.current_task():
                self._autoplay_task = None

    def _on_engine_error(self, session: PlaybackSession, error: EngineError) -> None:
        if session is not self._session:
            return
        if not error.fatal:
            logger.warning("[playback] Non-fatal %s error: %s", session.protocol, error.message)
            return
        logger.error("[playback] Fatal %s error: %s", session.protocol, error.message)
        self._fail(session, _FATAL_MESSAGES.get(session.strategy, INIT_FAILED_MESSAGE))

    def _fail(self, session: PlaybackSession, message: str) -> None:
        # The failed session keeps the surface until unbind(); its engine does not.
        if self._autoplay_task is not None:
            self._autoplay_task.cancel()
            self._autoplay_task = None
        self._release(session)
        session.phase = SessionPhase.ERROR
        session.error = message
        self._notify()

    def _release(self, session: PlaybackSession) -> None:
        engine = session.engine
        session.engine = None
        if engine is not None:
            engine.release()
        surface = self._surface
        if surface is not None and session.listeners:
            for event, handler in session.listeners:
                surface.remove_listener(event, handler)
            session.listeners = []
            if session.strategy is PlaybackStrategy.NATIVE_HLS:
                surface.src = None

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
