from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum

from .job import EncodingJob
from .stream import StreamDescriptor


@dataclass(frozen=True)
class JobsSnapshot:
    """One fetch's full, ordered job list. Replaced wholesale, never patched."""

    items: tuple[EncodingJob, ...] = ()
    error: str | None = None
    sequence: int = 0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class StreamsSnapshot:
    items: tuple[StreamDescriptor, ...] = ()
    error: str | None = None
    sequence: int = 0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ReconciliationOutcome(StrEnum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass
class ReconciliationAttempt:
    source_file: str
    attempt: int = 0                 # attempts made so far
    elapsed_delay: float = 0.0       # seconds of scheduled delay so far
    last_error: str | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    source_file: str
    outcome: ReconciliationOutcome
    attempts: int
    stream: StreamDescriptor | None = None
