from __future__ import annotations

import asyncio

import pytest

from models import ReconciliationOutcome, StreamDescriptor
from services.api_client import ServiceError
from services.reconciler import PostUploadReconciler, find_stream_for_upload
from services.scheduler import ManualScheduler

UPLOAD_ID = "0b7c9e2a-clip.mp4"


def _stream(stream_id: str, original_file: str) -> StreamDescriptor:
    return StreamDescriptor(
        id=stream_id,
        title=original_file,
        original_file=original_file,
        hls_url=f"/hls/{stream_id}/master.m3u8",
    )


class _ScriptedCatalog:
    """Answers fetch_streams() from a script; records the fake-clock time of each call."""

    def __init__(self, clock: ManualScheduler, script: list[object]) -> None:
        self._clock = clock
        self._script = list(script)
        self.call_times: list[float] = []

    async def fetch_streams(self) -> list[StreamDescriptor]:
        self.call_times.append(self._clock.time())
        step = self._script.pop(0) if self._script else []
        if isinstance(step, Exception):
            raise step
        return list(step)  # type: ignore[arg-type]


async def _settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


async def _run_for(clock: ManualScheduler, seconds: float, step: float = 0.5) -> None:
    elapsed = 0.0
    while elapsed < seconds:
        clock.advance(step)
        elapsed += step
        await _settle()


def test_find_stream_matches_on_original_file() -> None:
    streams = [_stream("s1", "other.mp4"), _stream("s2", UPLOAD_ID)]
    assert find_stream_for_upload(streams, UPLOAD_ID).id == "s2"
    assert find_stream_for_upload(streams, "missing.mp4") is None


def test_delay_is_linear_in_attempt_number() -> None:
    rec = PostUploadReconciler(_ScriptedCatalog(ManualScheduler(), []), scheduler=ManualScheduler())
    assert [rec.delay_before(n) for n in range(1, 6)] == [2.0, 4.0, 6.0, 8.0, 10.0]


@pytest.mark.asyncio
async def test_gives_up_after_five_attempts() -> None:
    clock = ManualScheduler()
    catalog = _ScriptedCatalog(clock, [])
    reconciler = PostUploadReconciler(catalog, scheduler=clock)
    results = []

    rec = reconciler.start(UPLOAD_ID, on_done=results.append)
    await _run_for(clock, 40.0)

    assert catalog.call_times == [2.0, 6.0, 12.0, 20.0, 30.0]
    assert rec.done
    assert rec.outcome is ReconciliationOutcome.EXHAUSTED
    assert rec.state.elapsed_delay == 30.0
    assert results[0].attempts == 5
    assert reconciler.active == []
    assert clock.pending == 0


@pytest.mark.asyncio
async def test_succeeds_once_stream_for_upload_appears() -> None:
    clock = ManualScheduler()
    catalog = _ScriptedCatalog(
        clock,
        [[], [_stream("s0", "earlier.mp4")], [_stream("s0", "earlier.mp4"), _stream("s1", UPLOAD_ID)]],
    )
    reconciler = PostUploadReconciler(catalog, scheduler=clock)
    seen: list[int] = []

    rec = reconciler.start(UPLOAD_ID, on_streams=lambda streams: seen.append(len(streams)))
    await _run_for(clock, 40.0)

    result = await rec.result()
    assert result.outcome is ReconciliationOutcome.SUCCEEDED
    assert result.attempts == 3
    assert result.stream is not None and result.stream.id == "s1"
    assert catalog.call_times == [2.0, 6.0, 12.0]
    assert seen == [0, 1, 2]


@pytest.mark.asyncio
async def test_growing_list_of_unrelated_streams_does_not_count() -> None:
    clock = ManualScheduler()
    catalog = _ScriptedCatalog(
        clock,
        [[_stream(f"s{i}", f"other-{i}.mp4") for i in range(n)] for n in range(1, 6)],
    )
    reconciler = PostUploadReconciler(catalog, scheduler=clock)

    rec = reconciler.start(UPLOAD_ID)
    await _run_for(clock, 40.0)

    assert rec.outcome is ReconciliationOutcome.EXHAUSTED
    assert len(catalog.call_times) == 5


@pytest.mark.asyncio
async def test_fetch_errors_spend_attempts() -> None:
    clock = ManualScheduler()
    error = ServiceError("Failed to fetch video streams: Internal Server Error", status_code=500)
    catalog = _ScriptedCatalog(clock, [error, error, [_stream("s1", UPLOAD_ID)]])
    reconciler = PostUploadReconciler(catalog, scheduler=clock)

    rec = reconciler.start(UPLOAD_ID)
    await _run_for(clock, 7.0)
    assert rec.attempts == 2
    assert rec.state.last_error is not None

    await _run_for(clock, 6.0)
    assert rec.outcome is ReconciliationOutcome.SUCCEEDED
    assert rec.attempts == 3
    assert rec.state.last_error is None


@pytest.mark.asyncio
async def test_cancel_stops_further_attempts() -> None:
    clock = ManualScheduler()
    catalog = _ScriptedCatalog(clock, [])
    reconciler = PostUploadReconciler(catalog, scheduler=clock)
    results = []

    rec = reconciler.start(UPLOAD_ID, on_done=results.append)
    await _run_for(clock, 3.0)
    assert rec.attempts == 1

    reconciler.cancel_all()
    await _settle()
    await _run_for(clock, 40.0)

    assert rec.outcome is ReconciliationOutcome.CANCELLED
    assert len(catalog.call_times) == 1
    assert results[0].outcome is ReconciliationOutcome.CANCELLED
    assert reconciler.active == []


@pytest.mark.asyncio
async def test_independent_runs_per_upload() -> None:
    clock = ManualScheduler()
    catalog = _ScriptedCatalog(clock, [[_stream("s1", "a.mp4")]] * 10)
    reconciler = PostUploadReconciler(catalog, scheduler=clock)

    first = reconciler.start("a.mp4")
    second = reconciler.start("b.mp4")
    assert len(reconciler.active) == 2

    await _run_for(clock, 3.0)
    assert first.outcome is ReconciliationOutcome.SUCCEEDED
    assert second.outcome is ReconciliationOutcome.PENDING
    second.cancel()
    assert second.outcome is ReconciliationOutcome.CANCELLED
