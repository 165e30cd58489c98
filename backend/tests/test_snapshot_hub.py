from __future__ import annotations

import asyncio

import pytest

from services.snapshot_hub import SnapshotHub


@pytest.mark.asyncio
async def test_snapshot_hub_replays_latest_for_late_subscriber() -> None:
    hub: SnapshotHub[dict] = SnapshotHub()
    hub.publish({"sequence": 1})
    hub.publish({"sequence": 2})

    q = hub.subscribe()
    latest = await asyncio.wait_for(q.get(), timeout=0.5)
    assert latest == {"sequence": 2}
    assert q.empty()

    hub.unsubscribe(q)
    assert hub.subscriber_count == 0


@pytest.mark.asyncio
async def test_snapshot_hub_is_latest_wins_per_subscriber() -> None:
    hub: SnapshotHub[int] = SnapshotHub()
    q1 = hub.subscribe()
    q2 = hub.subscribe()
    for seq in range(5):
        hub.publish(seq)

    assert q1.get_nowait() == 4
    assert q2.get_nowait() == 4
    assert hub.latest == 4
