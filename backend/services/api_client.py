"""Async HTTP clients for the upload, catalog and encoding services."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from models import EncodingJob, StreamDescriptor, UploadResponse, VideoFile

logger = logging.getLogger(__name__)

_streams_adapter = TypeAdapter(list[StreamDescriptor])
_jobs_adapter = TypeAdapter(list[EncodingJob])
_files_adapter = TypeAdapter(list[VideoFile])


class ServiceError(Exception):
    """Non-2xx response from one of the collaborator services."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadRejected(ValueError):
    """The file was refused before reaching the upload service."""


def ensure_video_content_type(content_type: str | None) -> None:
    if not content_type or not content_type.lower().startswith("video/"):
        raise UploadRejected("Please upload a video file")


def _check(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    raise ServiceError(f"{what}: {response.reason_phrase}", status_code=response.status_code)


class UploadClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def upload(self, filename: str, content: bytes, content_type: str) -> UploadResponse:
        ensure_video_content_type(content_type)
        response = await self._http.post(
            f"{self._base_url}/upload",
            files={"file": (filename, content, content_type)},
        )
        _check(response, "Upload failed")
        return UploadResponse.model_validate(response.json())


class CatalogClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def list_files(self) -> list[VideoFile]:
        response = await self._http.get(f"{self._base_url}/files")
        _check(response, "Failed to fetch files")
        return _files_adapter.validate_python(response.json() or [])

    def download_url(self, file_id: str) -> str:
        return f"{self._base_url}/download/{quote(file_id, safe='')}"

    async def download(self, file_id: str) -> httpx.Response:
        """Raw download response; callers read status, headers and body themselves."""
        return await self._http.get(self.download_url(file_id))


class EncodingClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base_url

    async def submit_job(self, source_file: str) -> EncodingJob:
        response = await self._http.post(
            f"{self._base_url}/encode",
            json={"source_file": source_file},
        )
        _check(response, "Failed to submit encoding job")
        return EncodingJob.model_validate(response.json())

    async def list_jobs(self, status: str | None = None) -> list[EncodingJob]:
        params = {"status": status} if status else None
        response = await self._http.get(f"{self._base_url}/jobs", params=params)
        _check(response, "Failed to fetch encoding jobs")
        # The Go service encodes an empty slice as null.
        return _jobs_adapter.validate_python(response.json() or [])

    async def get_job(self, job_id: str) -> EncodingJob:
        response = await self._http.get(f"{self._base_url}/jobs/{job_id}")
        _check(response, "Failed to fetch encoding job")
        return EncodingJob.model_validate(response.json())

    async def fetch_streams(self) -> list[StreamDescriptor]:
        """Strict variant: raises on transport errors and non-2xx responses."""
        response = await self._http.get(f"{self._base_url}/streams")
        _check(response, "Failed to fetch video streams")
        return _parse_streams(response)

    async def list_streams(self) -> list[StreamDescriptor]:
        """
        Playable streams, never None.

        Any failure (transport, status, body) degrades to an empty list.
        """
        try:
            return await self.fetch_streams()
        except ServiceError as e:
            logger.warning("[api_client] %s", e)
        except httpx.HTTPError as e:
            logger.error("[api_client] Error fetching video streams: %s", e)
        return []


def _parse_streams(response: httpx.Response) -> list[StreamDescriptor]:
    try:
        data: Any = response.json()
    except ValueError:
        logger.warning("[api_client] Streams response is not JSON, defaulting to empty list")
        return []
    if not isinstance(data, list):
        logger.warning("[api_client] API returned invalid data for streams, defaulting to empty list")
        return []
    try:
        return _streams_adapter.validate_python(data)
    except ValidationError as e:
        logger.warning("[api_client] Malformed stream entries, defaulting to empty list: %s", e)
        return []
