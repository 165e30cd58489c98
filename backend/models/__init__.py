from .job import JOB_STATUS_TEXT, EncodingJob, JobStatus
from .playback import (
    PlaybackSession,
    PlaybackState,
    PlaybackStrategy,
    ResolvedSource,
    SessionPhase,
    StreamProtocol,
)
from .snapshot import (
    JobsSnapshot,
    ReconciliationAttempt,
    ReconciliationOutcome,
    ReconciliationResult,
    StreamsSnapshot,
)
from .stream import StreamDescriptor
from .upload import UploadResponse, VideoFile

__all__ = [
    "EncodingJob",
    "JobStatus",
    "JOB_STATUS_TEXT",
    "StreamDescriptor",
    "UploadResponse",
    "VideoFile",
    "StreamProtocol",
    "PlaybackStrategy",
    "PlaybackState",
    "SessionPhase",
    "ResolvedSource",
    "PlaybackSession",
    "JobsSnapshot",
    "StreamsSnapshot",
    "ReconciliationAttempt",
    "ReconciliationOutcome",
    "ReconciliationResult",
]
