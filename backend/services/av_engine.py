"""Software HLS / DASH engine: FFmpeg (via PyAV) demuxes and decodes the stream."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable

import av
from av.error import FFmpegError, InvalidDataError

from models import StreamProtocol
from services.engine import EngineError, EngineEvent

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIMEOUT_SECONDS = 10.0

_FORMAT_BY_PROTOCOL = {
    StreamProtocol.HLS: "hls",
    StreamProtocol.DASH: "dash",
}


def software_hls_supported() -> bool:
    """True when the bundled FFmpeg has an HLS demuxer."""
    return "hls" in av.formats_available


class AvStreamEngine:
    """
    Plays one manifest url onto a surface.

    Demuxing runs on a daemon worker thread; lifecycle signals and decoded
    frames are handed back to the event loop with call_soon_threadsafe and are
    dropped once release() has been called, so a released engine can never
    touch the controller or the surface again. Frames are paced to their
    presentation timestamps.

    release() cannot interrupt a call already blocked inside FFmpeg: a
    pending av.open() or segment read runs until it returns or hits
    `timeout`, after which the worker sees the stop flag, closes the
    container and exits without issuing further requests.
    """

    def __init__(
        self,
        format_name: str | None,
        *,
        timeout: float = DEFAULT_OPEN_TIMEOUT_SECONDS,
    ) -> None:
        self._format = format_name
        self._timeout = timeout
        self._handlers: dict[EngineEvent, list[Callable[..., None]]] = defaultdict(list)
        self._surface: Any | None = None
        self._url: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def running(self) -> bool:
        """True while the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def on(self, event: EngineEvent, handler: Callable[..., None]) -> None:
        self._handlers[event].append(handler)

    def attach(self, surface: Any) -> None:
        self._surface = surface

    def load(self, url: str) -> None:
        if self._released:
            raise RuntimeError("engine already released")
        if self._thread is not None:
            raise RuntimeError("engine already loading; create a new engine per source")
        self._loop = asyncio.get_running_loop()
        self._url = url
        self._thread = threading.Thread(
            target=self._run,
            args=(url,),
            name=f"av-{self._format or 'auto'}-engine",
            daemon=True,
        )
        self._thread.start()
        logger.info("[av_engine] Loading %s (format=%s)", url, self._format)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._stop.set()
        self._handlers.clear()
        self._surface = None
        logger.debug("[av_engine] Released engine for %s", self._url)

    def _emit(self, event: EngineEvent, *args: Any) -> None:
        if self._released:
            return
        for handler in list(self._handlers.get(event, ())):
            handler(*args)

    def _render(self, frame: Any) -> None:
        if self._released or self._surface is None:
            return
        self._surface.render(frame)

    def _post(self, fn: Callable[..., None], *args: Any) -> None:
        loop = self._loop
        if loop is None or self._released:
            return
        try:
            loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            # Loop already closed; nobody is listening any more.
            self._stop.set()

    def _run(self, url: str) -> None:
        try:
            container = av.open(url, format=self._format, timeout=self._timeout)
        except (FFmpegError, OSError, ValueError) as e:
            self._post(self._emit, EngineEvent.ERROR, EngineError(True, f"Failed to open stream: {e}", e))
            return
        try:
            with container:
                self._play(container)
        except (FFmpegError, OSError) as e:
            self._post(self._emit, EngineEvent.ERROR, EngineError(True, f"Stream playback failed: {e}", e))

    def _play(self, container: Any) -> None:
        if self._stop.is_set():
            return
        if not container.streams.video:
            self._post(self._emit, EngineEvent.ERROR, EngineError(True, "Stream has no video track"))
            return
        stream = container.streams.video[0]
        self._post(
            self._emit,
            EngineEvent.READY,
            {
                "duration": container.duration,
                "width": stream.codec_context.width,
                "height": stream.codec_context.height,
            },
        )

        started = time.monotonic()
        first_pts: float | None = None
        for packet in container.demux(stream):
            if self._stop.is_set():
                return
            try:
                frames = packet.decode()
            except InvalidDataError as e:
                # A corrupt packet costs one frame, not the session.
                self._post(self._emit, EngineEvent.ERROR, EngineError(False, str(e), e))
                continue
            for frame in frames:
                if frame.time is not None:
                    if first_pts is None:
                        first_pts = frame.time
                    lag = (frame.time - first_pts) - (time.monotonic() - started)
                    if lag > 0 and self._stop.wait(lag):
                        return
                self._post(self._render, frame)
        if not self._stop.is_set():
            self._post(self._emit, EngineEvent.ENDED)


def create_engine(protocol: StreamProtocol, *, timeout: float = DEFAULT_OPEN_TIMEOUT_SECONDS) -> AvStreamEngine:
    if protocol not in _FORMAT_BY_PROTOCOL:
        raise ValueError(f"no software engine for protocol {protocol!r}")
    return AvStreamEngine(_FORMAT_BY_PROTOCOL[protocol], timeout=timeout)
