from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel

from models import UploadResponse
from routes.deps import get_orchestrator
from services.orchestrator import ViewOrchestrator

router = APIRouter(tags=["uploads"])
logger = logging.getLogger(__name__)


class UploadResult(BaseModel):
    message: str
    upload: UploadResponse
    job_id: str | None = None
    encode_failed: bool = False


@router.post("/uploads", response_model=UploadResult, status_code=201)
async def upload_video(
    file: UploadFile = File(...),
    orchestrator: ViewOrchestrator = Depends(get_orchestrator),
) -> UploadResult:
    """Forward a video to the upload service, submit it for encoding and start reconciling."""
    logger.info("[uploads] POST /api/uploads filename=%s type=%s", file.filename, file.content_type)
    content = await file.read()
    outcome = await orchestrator.upload(file.filename or "upload", content, file.content_type)
    if outcome.rejected:
        raise HTTPException(status_code=415, detail=outcome.message)
    if not outcome.accepted or outcome.upload is None:
        raise HTTPException(status_code=502, detail=outcome.message)
    return UploadResult(
        message=outcome.message,
        upload=outcome.upload,
        job_id=outcome.job_id,
        encode_failed=outcome.encode_failed,
    )
