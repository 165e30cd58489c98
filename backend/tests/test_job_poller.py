from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from models import EncodingJob
from services.api_client import ServiceError
from services.job_poller import FETCH_ERROR_MESSAGE, JobPoller, sort_jobs
from services.scheduler import ManualScheduler


def _job(job_id: str, created_at: str | datetime = "2025-01-01T10:00:00Z", status: str = "pending") -> EncodingJob:
    return EncodingJob(id=job_id, source_file=f"uploads/{job_id}.mp4", status=status, created_at=created_at)


class _PendingJobSource:
    """Every list_jobs() call parks on a future the test resolves by hand."""

    def __init__(self) -> None:
        self.calls: list[asyncio.Future[list[EncodingJob]]] = []

    async def list_jobs(self) -> list[EncodingJob]:
        fut: asyncio.Future[list[EncodingJob]] = asyncio.get_running_loop().create_future()
        self.calls.append(fut)
        return await fut


class _ImmediateJobSource:
    def __init__(self, jobs: list[EncodingJob] | None = None) -> None:
        self.jobs = jobs or []
        self.count = 0

    async def list_jobs(self) -> list[EncodingJob]:
        self.count += 1
        return list(self.jobs)


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def test_sort_jobs_newest_first() -> None:
    old = _job("a", "2025-01-01T09:00:00Z")
    new = _job("b", "2025-01-01T11:00:00Z")
    mid = _job("c", "2025-01-01T10:00:00Z")
    assert [j.id for j in sort_jobs([old, new, mid])] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_start_fetches_immediately_then_every_interval() -> None:
    source = _ImmediateJobSource([_job("j1")])
    clock = ManualScheduler()
    poller = JobPoller(source, interval=5.0, scheduler=clock)

    sub = poller.start()
    await _settle()
    assert source.count == 1
    assert poller.snapshot.items[0].id == "j1"

    for _ in range(3):
        clock.advance(5.0)
        await _settle()
    assert source.count == 4
    assert sub.ticks == 4
    assert poller.snapshot.sequence == 4
    poller.stop(sub)


@pytest.mark.asyncio
async def test_out_of_order_responses_keep_latest_request() -> None:
    source = _PendingJobSource()
    clock = ManualScheduler()
    poller = JobPoller(source, scheduler=clock)

    poller.start()
    await _settle()
    clock.advance(5.0)
    await _settle()
    assert len(source.calls) == 2

    source.calls[1].set_result([_job("newer")])
    await _settle()
    source.calls[0].set_result([_job("older")])
    await _settle()

    assert [j.id for j in poller.snapshot.items] == ["newer"]
    assert poller.snapshot.sequence == 2
    poller.stop()


@pytest.mark.asyncio
async def test_failed_fetch_keeps_items_and_polling_continues() -> None:
    source = _PendingJobSource()
    clock = ManualScheduler()
    poller = JobPoller(source, scheduler=clock)

    poller.start()
    await _settle()
    source.calls[0].set_result([_job("j1")])
    await _settle()

    clock.advance(5.0)
    await _settle()
    source.calls[1].set_exception(ServiceError("Failed to fetch encoding jobs: Bad Gateway", status_code=502))
    await _settle()

    assert poller.snapshot.error == FETCH_ERROR_MESSAGE
    assert [j.id for j in poller.snapshot.items] == ["j1"]

    clock.advance(5.0)
    await _settle()
    assert len(source.calls) == 3
    source.calls[2].set_result([_job("j1", status="processing")])
    await _settle()
    assert poller.snapshot.error is None
    assert poller.snapshot.items[0].status == "processing"
    poller.stop()


@pytest.mark.asyncio
async def test_stop_cancels_timer_and_discards_inflight() -> None:
    source = _PendingJobSource()
    clock = ManualScheduler()
    poller = JobPoller(source, scheduler=clock)
    published = []
    q = poller.subscribe()

    sub = poller.start()
    await _settle()
    poller.stop(sub)
    await _settle()

    assert source.calls[0].cancelled()
    assert clock.pending == 0
    assert not poller.running

    clock.advance(60.0)
    await _settle()
    assert len(source.calls) == 1
    while not q.empty():
        published.append(q.get_nowait())
    assert published == []


@pytest.mark.asyncio
async def test_refresh_now_leaves_schedule_alone() -> None:
    source = _ImmediateJobSource([_job("j1")])
    clock = ManualScheduler()
    poller = JobPoller(source, scheduler=clock)

    poller.start()
    await _settle()
    clock.advance(2.0)
    snapshot = await poller.refresh_now()

    assert source.count == 2
    assert snapshot.sequence == 2
    assert clock.next_deadline() == 5.0
    assert clock.pending == 1
    poller.stop()


@pytest.mark.asyncio
async def test_subscribers_receive_latest_snapshot() -> None:
    source = _ImmediateJobSource([_job("a", "2025-01-01T09:00:00Z"), _job("b", "2025-01-01T12:00:00Z")])
    poller = JobPoller(source, scheduler=ManualScheduler())
    q = poller.subscribe()

    poller.start()
    await _settle()
    snapshot = q.get_nowait()
    assert [j.id for j in snapshot.items] == ["b", "a"]

    late = poller.subscribe()
    assert late.get_nowait() is snapshot
    poller.unsubscribe(q)
    poller.unsubscribe(late)
    assert poller.hub.subscriber_count == 0
    poller.stop()


@pytest.mark.asyncio
async def test_start_twice_returns_same_subscription() -> None:
    poller = JobPoller(_ImmediateJobSource(), scheduler=ManualScheduler())
    first = poller.start()
    assert poller.start() is first
    poller.stop(first)
    poller.stop(first)
    assert not first.active


@pytest.mark.asyncio
async def test_mixed_naive_and_aware_timestamps_sort() -> None:
    naive = _job("naive", datetime(2025, 1, 1))
    aware = _job("aware", "2025-01-02T00:00:00Z")
    poller = JobPoller(_ImmediateJobSource([naive, aware]), scheduler=ManualScheduler())

    poller.start()
    snapshot = await poller.refresh_now()

    assert [j.id for j in snapshot.items] == ["aware", "naive"]
    assert snapshot.error is None
    assert naive.created_at.tzinfo is timezone.utc
    poller.stop()


@pytest.mark.asyncio
async def test_refresh_now_after_stop_does_not_fetch() -> None:
    source = _ImmediateJobSource([_job("j1")])
    poller = JobPoller(source, scheduler=ManualScheduler())
    q = poller.subscribe()

    poller.start()
    await _settle()
    before = q.get_nowait()
    poller.stop()

    snapshot = await poller.refresh_now()
    await _settle()

    assert snapshot is before
    assert source.count == 1
    assert q.empty()
