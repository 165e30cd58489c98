from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UploadResponse(BaseModel):
    """Acknowledgement from the upload service (POST /upload)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    file_id: str
    filename: str
    size: int
    mime_type: str
    uploaded_at: datetime


class VideoFile(BaseModel):
    """Entry in the catalog listing (GET /files)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    size: int
    mime_type: str
    created_at: datetime
    url: str
