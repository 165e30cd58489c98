from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from models import JobsSnapshot
from routes.deps import get_orchestrator, ws_orchestrator
from services.orchestrator import ViewOrchestrator

router = APIRouter(tags=["jobs"])
logger = logging.getLogger(__name__)


def snapshot_payload(snapshot: JobsSnapshot) -> dict:
    return {
        "sequence": snapshot.sequence,
        "error": snapshot.error,
        "fetched_at": snapshot.fetched_at.isoformat(),
        "jobs": [job.to_view() for job in snapshot.items],
    }


@router.get("/jobs")
async def read_jobs(orchestrator: ViewOrchestrator = Depends(get_orchestrator)) -> dict:
    return snapshot_payload(orchestrator.jobs)


@router.post("/jobs/refresh")
async def refresh_jobs(orchestrator: ViewOrchestrator = Depends(get_orchestrator)) -> dict:
    return snapshot_payload(await orchestrator.poller.refresh_now())


async def _forward(websocket: WebSocket, q: asyncio.Queue[JobsSnapshot]) -> None:
    while True:
        snapshot = await q.get()
        await websocket.send_json(snapshot_payload(snapshot))


@router.websocket("/ws/jobs")
async def ws_jobs(websocket: WebSocket) -> None:
    """
    Push every published job snapshot (the latest one first) to the client.

    Incoming messages are ignored; reading them is how a disconnect is noticed
    while no snapshot is pending.
    """
    orchestrator = ws_orchestrator(websocket)
    await websocket.accept()
    q = orchestrator.poller.subscribe()
    logger.info("[jobs_ws] Subscribed (subscribers=%d)", orchestrator.poller.hub.subscriber_count)
    sender = asyncio.ensure_future(_forward(websocket, q))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        orchestrator.poller.unsubscribe(q)
        logger.info("[jobs_ws] Client disconnected")
