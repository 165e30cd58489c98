from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class SnapshotHub(Generic[T]):
    """
    In-memory pubsub for whole-list snapshots.

    - Each subscriber gets an asyncio.Queue(maxsize=1) (latest-wins).
    - The latest snapshot is kept and handed to late subscribers straight away.
    - Publishing is synchronous so a snapshot is delivered in the same loop
      iteration that produced it.
    """

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[T]] = set()
        self._latest: T | None = None

    @property
    def latest(self) -> T | None:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[T]:
        q: asyncio.Queue[T] = asyncio.Queue(maxsize=1)
        if self._latest is not None:
            q.put_nowait(self._latest)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[T]) -> None:
        self._subscribers.discard(q)

    def publish(self, payload: T) -> None:
        self._latest = payload
        for q in list(self._subscribers):
            # latest-wins: if queue is full, drop the old snapshot
            if q.full():
                try:
                    _ = q.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                pass
