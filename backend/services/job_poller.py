from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol

import httpx

from models import EncodingJob, JobsSnapshot
from services.api_client import ServiceError
from services.scheduler import LoopScheduler, Scheduler, TimerHandle
from services.snapshot_hub import SnapshotHub

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
FETCH_ERROR_MESSAGE = "Failed to load encoding jobs"


class JobSource(Protocol):
    async def list_jobs(self) -> list[EncodingJob]: ...


def sort_jobs(jobs: Iterable[EncodingJob]) -> tuple[EncodingJob, ...]:
    """Newest first by created_at; jobs with equal timestamps keep server order."""
    return tuple(sorted(jobs, key=lambda j: j.created_at, reverse=True))


class PollSubscription:
    """Handle returned by JobPoller.start(); pass it back to stop()."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self.active = True
        self.ticks = 0
        self._timer: TimerHandle | None = None

    def _cancel(self) -> None:
        self.active = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class JobPoller:
    """
    Fixed-interval polling of the encoding service's job list.

    Every fetch is numbered when it is requested. A response is applied only
    if it is newer than the last applied one, so a slow earlier request can
    never overwrite a later one. Each applied response replaces the published
    snapshot wholesale. Failed fetches publish an error snapshot (keeping the
    last good items) and the interval carries on without backoff.
    """

    def __init__(
        self,
        client: JobSource,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        scheduler: Scheduler | None = None,
        hub: SnapshotHub[JobsSnapshot] | None = None,
    ) -> None:
        self._client = client
        self._interval = interval
        self._scheduler = scheduler or LoopScheduler()
        self._hub: SnapshotHub[JobsSnapshot] = hub or SnapshotHub()
        self._snapshot = JobsSnapshot()
        self._subscription: PollSubscription | None = None
        self._requested_seq = 0
        self._applied_seq = 0
        self._discard_through = 0
        self._inflight: dict[int, asyncio.Task[JobsSnapshot]] = {}

    @property
    def snapshot(self) -> JobsSnapshot:
        return self._snapshot

    @property
    def running(self) -> bool:
        return self._subscription is not None

    @property
    def hub(self) -> SnapshotHub[JobsSnapshot]:
        return self._hub

    def subscribe(self) -> asyncio.Queue[JobsSnapshot]:
        return self._hub.subscribe()

    def unsubscribe(self, q: asyncio.Queue[JobsSnapshot]) -> None:
        self._hub.unsubscribe(q)

    def start(self, interval: float | None = None) -> PollSubscription:
        """Fetch now, then every `interval` seconds until stop()."""
        if self._subscription is not None:
            return self._subscription
        sub = PollSubscription(interval or self._interval)
        self._subscription = sub
        logger.info("[job_poller] Started, interval=%.1fs", sub.interval)
        self._tick(sub)
        return sub

    def stop(self, subscription: PollSubscription | None = None) -> None:
        """
        Cancel the interval and every in-flight fetch.

        Responses that were requested before stop() are discarded, so nothing
        is published once this returns.
        """
        sub = subscription or self._subscription
        if sub is None:
            return
        sub._cancel()
        if sub is not self._subscription:
            return
        self._subscription = None
        self._discard_through = self._requested_seq
        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()
        logger.info("[job_poller] Stopped after %d ticks", sub.ticks)

    async def refresh_now(self) -> JobsSnapshot:
        """
        One out-of-band fetch; the interval schedule is left untouched.

        A stopped poller does not fetch and returns the current snapshot.
        """
        if self._subscription is None:
            return self._snapshot
        task = self._launch_fetch()
        await asyncio.wait({task})
        if task.cancelled():
            return self._snapshot
        return task.result()

    def _tick(self, sub: PollSubscription) -> None:
        if not sub.active or sub is not self._subscription:
            return
        sub.ticks += 1
        self._launch_fetch()
        sub._timer = self._scheduler.call_later(sub.interval, lambda: self._tick(sub))

    def _launch_fetch(self) -> asyncio.Task[JobsSnapshot]:
        self._requested_seq += 1
        seq = self._requested_seq
        task = asyncio.ensure_future(self._fetch(seq))
        self._inflight[seq] = task
        task.add_done_callback(lambda _t: self._inflight.pop(seq, None))
        return task

    async def _fetch(self, seq: int) -> JobsSnapshot:
        try:
            jobs = await self._client.list_jobs()
        except (ServiceError, httpx.HTTPError, ValueError) as e:
            logger.warning("[job_poller] Fetch #%d failed: %s", seq, e)
            return self._apply(seq, None, error=FETCH_ERROR_MESSAGE)
        return self._apply(seq, sort_jobs(jobs))

    def _apply(
        self,
        seq: int,
        items: tuple[EncodingJob, ...] | None,
        *,
        error: str | None = None,
    ) -> JobsSnapshot:
        if seq <= self._discard_through or seq <= self._applied_seq:
            logger.debug(
                "[job_poller] Discarding stale fetch #%d (applied=%d)", seq, self._applied_seq
            )
            return self._snapshot
        self._applied_seq = seq
        snapshot = JobsSnapshot(
            items=self._snapshot.items if items is None else items,
            error=error,
            sequence=seq,
        )
        self._snapshot = snapshot
        self._hub.publish(snapshot)
        return snapshot
