"""Stream list, selection and playback state."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from models import StreamProtocol
from routes.deps import get_orchestrator
from services import source_resolver
from services.orchestrator import PlaybackView, ViewOrchestrator, ViewState

router = APIRouter(tags=["view"])
logger = logging.getLogger(__name__)


class StreamItem(BaseModel):
    id: str
    title: str
    original_file: str
    protocol: StreamProtocol
    url: str | None = None
    thumbnail_url: str | None = None
    duration: int | None = None
    created_at: datetime | None = None


class StreamListResponse(BaseModel):
    streams: list[StreamItem]
    error: str | None = None


@router.get("/view", response_model=ViewState)
async def read_view(orchestrator: ViewOrchestrator = Depends(get_orchestrator)) -> ViewState:
    return orchestrator.state()


def _stream_list(orchestrator: ViewOrchestrator) -> StreamListResponse:
    base_url = orchestrator.encoding.base_url
    snapshot = orchestrator.streams
    items = []
    for stream in snapshot.items:
        source = source_resolver.resolve(stream, base_url)
        items.append(
            StreamItem(
                id=stream.id,
                title=stream.title or "Untitled video",
                original_file=stream.original_file,
                protocol=source.protocol,
                url=source.url,
                thumbnail_url=source_resolver.resolve_asset_url(stream.thumbnail, base_url),
                duration=stream.duration,
                created_at=stream.created_at,
            )
        )
    return StreamListResponse(streams=items, error=snapshot.error)


@router.get("/streams", response_model=StreamListResponse)
async def list_streams(orchestrator: ViewOrchestrator = Depends(get_orchestrator)) -> StreamListResponse:
    return _stream_list(orchestrator)


@router.post("/streams/refresh", response_model=StreamListResponse)
async def refresh_streams(
    orchestrator: ViewOrchestrator = Depends(get_orchestrator),
) -> StreamListResponse:
    await orchestrator.refresh_streams()
    return _stream_list(orchestrator)


@router.post("/streams/{stream_id}/select", response_model=PlaybackView)
async def select_stream(
    stream_id: str,
    orchestrator: ViewOrchestrator = Depends(get_orchestrator),
) -> PlaybackView:
    logger.info("[view] POST /api/streams/%s/select", stream_id)
    selection = orchestrator.select_stream(stream_id)
    if selection is None:
        raise HTTPException(status_code=404, detail="Stream not found")
    view = orchestrator.state().playback
    if view is None:
        raise HTTPException(status_code=500, detail="Selection was not recorded")
    return view


@router.post("/playback/unbind", status_code=204)
async def back_to_list(orchestrator: ViewOrchestrator = Depends(get_orchestrator)) -> None:
    orchestrator.back_to_list()
