from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StreamDescriptor(BaseModel):
    """A playable stream as listed by the encoding service (GET /streams)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str = ""
    original_file: str = ""    # file_id the job was submitted with
    hls_url: str | None = None     # /hls/{job_id}/master.m3u8
    dash_url: str | None = None    # /dash/{job_id}/manifest.mpd
    thumbnail: str | None = None   # /encoded/{job_id}/thumbnail.jpg
    duration: int | None = None    # seconds
    created_at: datetime | None = None
