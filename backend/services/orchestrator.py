"""
View orchestration: upload -> encode -> reconcile, and list selection -> playback.

The orchestrator is the only writer of view state. Collaborator failures are
turned into messages on that state and never escape its public methods.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from pydantic import BaseModel

from models import (
    JobsSnapshot,
    PlaybackState,
    ReconciliationOutcome,
    ReconciliationResult,
    ResolvedSource,
    StreamDescriptor,
    StreamProtocol,
    StreamsSnapshot,
    UploadResponse,
)
from services import source_resolver
from services.api_client import EncodingClient, ServiceError, UploadClient, UploadRejected
from services.job_poller import JobPoller
from services.playback import AdaptivePlaybackController
from services.reconciler import PostUploadReconciler, Reconciliation
from services.snapshot_hub import SnapshotHub
from services.surface import HeadlessSurface, RenderSurface

logger = logging.getLogger(__name__)

STREAMS_ERROR_MESSAGE = "Failed to load videos. Please try again later."
ENCODE_FAILED_MESSAGE = "File uploaded but encoding failed. Please try again."
NO_STREAM_MESSAGE = "No playable stream is available for this video."
RECONCILE_EXHAUSTED_MESSAGE = (
    "Your video is still processing. It will appear in the list once encoding finishes."
)


@dataclass
class UploadOutcome:
    accepted: bool
    message: str
    upload: UploadResponse | None = None
    job_id: str | None = None
    rejected: bool = False         # refused before or by the upload service
    encode_failed: bool = False


@dataclass
class ViewNotices:
    upload_error: str | None = None
    upload_success: str | None = None
    reconcile_banner: str | None = None


@dataclass
class Selection:
    stream: StreamDescriptor
    source: ResolvedSource
    message: str | None = None


class PlaybackView(BaseModel):
    stream_id: str
    title: str
    protocol: StreamProtocol
    url: str | None = None
    strategy: str | None = None
    state: PlaybackState
    error: str | None = None
    notice: str | None = None
    autoplay_blocked: bool = False


class ViewState(BaseModel):
    streams: list[StreamDescriptor] = []
    streams_error: str | None = None
    jobs: list[dict] = []
    jobs_error: str | None = None
    upload_error: str | None = None
    upload_success: str | None = None
    reconcile_banner: str | None = None
    pending_reconciliations: list[str] = []
    playback: PlaybackView | None = None


@dataclass
class ViewOrchestrator:
    uploads: UploadClient
    encoding: EncodingClient
    poller: JobPoller
    reconciler: PostUploadReconciler
    controller: AdaptivePlaybackController
    surface: RenderSurface = field(default_factory=HeadlessSurface)
    streams_hub: SnapshotHub[StreamsSnapshot] = field(default_factory=SnapshotHub)

    def __post_init__(self) -> None:
        self.notices = ViewNotices()
        self.selection: Selection | None = None
        self.mounted = False
        self._streams = StreamsSnapshot()
        self._streams_seq = 0

    @property
    def streams(self) -> StreamsSnapshot:
        return self._streams

    @property
    def jobs(self) -> JobsSnapshot:
        return self.poller.snapshot

    async def mount(self) -> None:
        if self.mounted:
            return
        self.mounted = True
        self.poller.start()
        await self.refresh_streams()

    async def unmount(self) -> None:
        if not self.mounted:
            return
        self.mounted = False
        self.poller.stop()
        self.reconciler.cancel_all()
        self.controller.unbind()
        self.selection = None
        logger.info("[orchestrator] Unmounted")

    async def refresh_streams(self) -> StreamsSnapshot:
        try:
            streams = await self.encoding.fetch_streams()
        except (ServiceError, httpx.HTTPError) as e:
            logger.error("[orchestrator] Error fetching videos: %s", e)
            return self._publish_streams([], error=STREAMS_ERROR_MESSAGE)
        return self._publish_streams(streams)

    def _publish_streams(
        self, streams: list[StreamDescriptor], *, error: str | None = None
    ) -> StreamsSnapshot:
        self._streams_seq += 1
        snapshot = StreamsSnapshot(items=tuple(streams), error=error, sequence=self._streams_seq)
        self._streams = snapshot
        self.streams_hub.publish(snapshot)
        return snapshot

    async def upload(self, filename: str, content: bytes, content_type: str | None) -> UploadOutcome:
        try:
            response = await self.uploads.upload(filename, content, content_type or "")
        except UploadRejected as e:
            return self._upload_failed(str(e), rejected=True)
        except ServiceError as e:
            # 415 is the upload service refusing a non-video body.
            return self._upload_failed(str(e), rejected=e.status_code == 415)
        except httpx.HTTPError as e:
            logger.error("[orchestrator] Upload transport error: %s", e)
            return self._upload_failed("Upload failed")

        self.notices.upload_error = None
        self.notices.upload_success = f'File "{response.filename}" uploaded successfully!'
        logger.info("[orchestrator] Uploaded %s as %s", response.filename, response.file_id)

        try:
            job = await self.encoding.submit_job(response.file_id)
        except (ServiceError, httpx.HTTPError, ValueError) as e:
            logger.error("[orchestrator] Error submitting encoding job: %s", e)
            self.notices.upload_error = ENCODE_FAILED_MESSAGE
            return UploadOutcome(
                accepted=True,
                message=ENCODE_FAILED_MESSAGE,
                upload=response,
                encode_failed=True,
            )

        logger.info("[orchestrator] Submitted job %s for %s", job.id, job.source_file)
        self.notices.reconcile_banner = None
        await self.poller.refresh_now()
        self.reconciler.start(
            response.file_id,
            on_streams=self._on_reconciled_streams,
            on_done=self._on_reconciled,
        )
        return UploadOutcome(
            accepted=True,
            message=self.notices.upload_success,
            upload=response,
            job_id=job.id,
        )

    def _upload_failed(self, message: str, *, rejected: bool = False) -> UploadOutcome:
        self.notices.upload_error = message
        self.notices.upload_success = None
        return UploadOutcome(accepted=False, message=message, rejected=rejected)

    def _on_reconciled_streams(self, streams: list[StreamDescriptor]) -> None:
        if self.mounted:
            self._publish_streams(streams)

    def _on_reconciled(self, result: ReconciliationResult) -> None:
        if result.outcome is ReconciliationOutcome.EXHAUSTED:
            self.notices.reconcile_banner = RECONCILE_EXHAUSTED_MESSAGE
        elif result.outcome is ReconciliationOutcome.SUCCEEDED:
            self.notices.reconcile_banner = None

    @property
    def pending_reconciliations(self) -> list[Reconciliation]:
        return self.reconciler.active

    def find_stream(self, stream_id: str) -> StreamDescriptor | None:
        for stream in self._streams.items:
            if stream.id == stream_id:
                return stream
        return None

    def select_stream(self, stream_id: str) -> Selection | None:
        """Bind the player to a listed stream. Returns None for unknown ids."""
        stream = self.find_stream(stream_id)
        if stream is None:
            return None
        self.controller.unbind()
        source = source_resolver.resolve(stream, self.encoding.base_url)
        if source.protocol is StreamProtocol.NONE:
            self.selection = Selection(stream, source, NO_STREAM_MESSAGE)
            return self.selection
        self.selection = Selection(stream, source)
        self.controller.bind(self.surface, source)
        return self.selection

    def back_to_list(self) -> None:
        self.controller.unbind()
        self.selection = None

    def state(self) -> ViewState:
        jobs = self.poller.snapshot
        return ViewState(
            streams=list(self._streams.items),
            streams_error=self._streams.error,
            jobs=[job.to_view() for job in jobs.items],
            jobs_error=jobs.error,
            upload_error=self.notices.upload_error,
            upload_success=self.notices.upload_success,
            reconcile_banner=self.notices.reconcile_banner,
            pending_reconciliations=[r.source_file for r in self.pending_reconciliations],
            playback=self._playback_view(),
        )

    def _playback_view(self) -> PlaybackView | None:
        selection = self.selection
        if selection is None:
            return None
        session = self.controller.session
        return PlaybackView(
            stream_id=selection.stream.id,
            title=selection.stream.title or "Untitled video",
            protocol=selection.source.protocol,
            url=selection.source.url,
            strategy=session.strategy.value if session else None,
            state=self.controller.state,
            error=session.error if session else selection.message,
            notice=session.notice if session else None,
            autoplay_blocked=session.autoplay_blocked if session else False,
        )
