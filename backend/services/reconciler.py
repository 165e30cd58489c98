"""
Post-upload reconciliation: wait for a newly submitted upload to show up as a
playable stream.

The encoding service never pushes "stream ready", so after a job is submitted
the stream list is re-queried with linear backoff until an entry produced
from the uploaded file appears or the attempt budget runs out. Not seeing the
stream yet is an expected race, so exhaustion is reported as an outcome and
never raised.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

import httpx

from models import (
    ReconciliationAttempt,
    ReconciliationOutcome,
    ReconciliationResult,
    StreamDescriptor,
)
from services.api_client import ServiceError
from services.scheduler import LoopScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 5

StreamsCallback = Callable[[list[StreamDescriptor]], None]
DoneCallback = Callable[[ReconciliationResult], None]


class StreamSource(Protocol):
    async def fetch_streams(self) -> list[StreamDescriptor]: ...


def find_stream_for_upload(
    streams: list[StreamDescriptor], source_file: str
) -> StreamDescriptor | None:
    """The stream encoded from `source_file`, matched on identity rather than list size."""
    for stream in streams:
        if stream.original_file == source_file:
            return stream
    return None


class Reconciliation:
    """Handle for one upload's reconciliation run."""

    def __init__(self, source_file: str, future: asyncio.Future[ReconciliationResult]) -> None:
        self.state = ReconciliationAttempt(source_file=source_file)
        self._future = future
        self._timer: TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def source_file(self) -> str:
        return self.state.source_file

    @property
    def attempts(self) -> int:
        return self.state.attempt

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def outcome(self) -> ReconciliationOutcome:
        if not self._future.done():
            return ReconciliationOutcome.PENDING
        return self._future.result().outcome

    async def result(self) -> ReconciliationResult:
        return await asyncio.shield(self._future)

    def cancel(self) -> None:
        if self._future.done():
            return
        if self._timer is not None:
            self._timer.cancel()
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._future.set_result(
            ReconciliationResult(
                source_file=self.source_file,
                outcome=ReconciliationOutcome.CANCELLED,
                attempts=self.attempts,
            )
        )


class PostUploadReconciler:
    def __init__(
        self,
        catalog: StreamSource,
        *,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._catalog = catalog
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._scheduler = scheduler or LoopScheduler()
        self._active: set[Reconciliation] = set()

    @property
    def active(self) -> list[Reconciliation]:
        return [r for r in self._active if not r.done]

    def delay_before(self, attempt: int) -> float:
        """Attempt n waits n * base_delay after the previous one (2s, 4s, 6s ...)."""
        return attempt * self._base_delay

    def start(
        self,
        source_file: str,
        *,
        on_streams: StreamsCallback | None = None,
        on_done: DoneCallback | None = None,
    ) -> Reconciliation:
        future: asyncio.Future[ReconciliationResult] = asyncio.get_running_loop().create_future()
        rec = Reconciliation(source_file, future)
        self._active.add(rec)

        def _finished(f: asyncio.Future[ReconciliationResult]) -> None:
            self._active.discard(rec)
            if on_done is not None and not f.cancelled():
                on_done(f.result())

        future.add_done_callback(_finished)
        logger.info("[reconciler] Waiting for a stream from source_file=%s", source_file)
        self._schedule(rec, on_streams)
        return rec

    def cancel_all(self) -> None:
        for rec in list(self._active):
            rec.cancel()

    def _schedule(self, rec: Reconciliation, on_streams: StreamsCallback | None) -> None:
        delay = self.delay_before(rec.attempts + 1)
        rec.state.elapsed_delay += delay
        rec._timer = self._scheduler.call_later(delay, lambda: self._launch(rec, on_streams))

    def _launch(self, rec: Reconciliation, on_streams: StreamsCallback | None) -> None:
        if rec.done:
            return
        rec._timer = None
        rec._task = asyncio.ensure_future(self._attempt(rec, on_streams))

    async def _attempt(self, rec: Reconciliation, on_streams: StreamsCallback | None) -> None:
        rec.state.attempt += 1
        attempt = rec.state.attempt
        try:
            streams = await self._catalog.fetch_streams()
        except (ServiceError, httpx.HTTPError, ValueError) as e:
            # Indistinguishable from "not ready yet": spend the attempt and carry on.
            rec.state.last_error = str(e)
            logger.warning("[reconciler] Attempt %d for %s failed: %s", attempt, rec.source_file, e)
            streams = None
        if rec.done:
            return

        match = None
        if streams is not None:
            rec.state.last_error = None
            if on_streams is not None:
                on_streams(streams)
            match = find_stream_for_upload(streams, rec.source_file)

        if match is not None:
            logger.info(
                "[reconciler] Stream %s for %s visible after %d attempt(s)",
                match.id,
                rec.source_file,
                attempt,
            )
            self._finish(rec, ReconciliationOutcome.SUCCEEDED, match)
            return
        if attempt >= self._max_attempts:
            logger.info(
                "[reconciler] No stream for %s after %d attempts (%.0fs); giving up",
                rec.source_file,
                attempt,
                rec.state.elapsed_delay,
            )
            self._finish(rec, ReconciliationOutcome.EXHAUSTED, None)
            return
        logger.info(
            "[reconciler] No stream for %s yet, retrying in %.0f seconds...",
            rec.source_file,
            self.delay_before(attempt + 1),
        )
        self._schedule(rec, on_streams)

    def _finish(
        self,
        rec: Reconciliation,
        outcome: ReconciliationOutcome,
        stream: StreamDescriptor | None,
    ) -> None:
        rec._task = None
        if rec.done:
            return
        rec._future.set_result(
            ReconciliationResult(
                source_file=rec.source_file,
                outcome=outcome,
                attempts=rec.attempts,
                stream=stream,
            )
        )
