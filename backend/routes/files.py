"""Catalog listing and the download proxy."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse, Response

from models import VideoFile
from routes.deps import get_catalog
from services.api_client import CatalogClient, ServiceError

router = APIRouter(tags=["files"])
logger = logging.getLogger(__name__)


@router.get("/files", response_model=list[VideoFile])
async def list_files(catalog: CatalogClient = Depends(get_catalog)) -> list[VideoFile]:
    try:
        return await catalog.list_files()
    except ServiceError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except httpx.HTTPError as e:
        logger.error("[files] Catalog unreachable: %s", e)
        raise HTTPException(status_code=502, detail="Catalog service unavailable") from e


@router.get("/download")
async def download(
    id: str | None = Query(default=None),
    catalog: CatalogClient = Depends(get_catalog),
) -> Response:
    """Proxy a catalog download, keeping the origin's content type and disposition."""
    if not id:
        return PlainTextResponse("Missing id parameter", status_code=400)
    try:
        upstream = await catalog.download(id)
    except httpx.HTTPError as e:
        logger.error("[files] Download error for %s: %s", id, e)
        return PlainTextResponse("Error downloading file", status_code=500)

    if not upstream.is_success:
        return PlainTextResponse(
            f"Error from catalog service: {upstream.reason_phrase}",
            status_code=upstream.status_code,
        )
    return Response(
        content=upstream.content,
        status_code=200,
        headers={
            "Content-Type": upstream.headers.get("content-type") or "application/octet-stream",
            "Content-Disposition": upstream.headers.get("content-disposition") or "attachment",
        },
    )
