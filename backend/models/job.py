from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Go zero time, emitted for started_at/completed_at before they are set.
_ZERO_TIME_PREFIX = "0001-01-01"


class JobStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


JOB_STATUS_TEXT = {
    JobStatus.PENDING: "Waiting to process",
    JobStatus.PROCESSING: "Currently processing",
    JobStatus.COMPLETED: "Ready to play",
    JobStatus.FAILED: "Processing failed",
}


class EncodingJob(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    source_file: str
    status: JobStatus
    progress: int = Field(default=0, ge=0, le=100)
    error_message: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    hls_manifest: str | None = None
    dash_manifest: str | None = None

    @field_validator("started_at", "completed_at", mode="before")
    @classmethod
    def _drop_zero_time(cls, v):
        if isinstance(v, str) and v.startswith(_ZERO_TIME_PREFIX):
            return None
        return v

    @field_validator("created_at", "started_at", "completed_at")
    @classmethod
    def _assume_utc(cls, v: datetime | None) -> datetime | None:
        # Naive timestamps are UTC.
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def status_text(self) -> str:
        return JOB_STATUS_TEXT.get(self.status, "Unknown status")

    @property
    def file_name(self) -> str:
        """Last path segment of the source file reference."""
        return self.source_file.rsplit("/", 1)[-1]

    def to_view(self) -> dict:
        """JSON-ready dict with the display fields a job card needs."""
        return {**self.model_dump(mode="json"), "status_text": self.status_text, "file_name": self.file_name}
