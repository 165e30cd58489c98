from .api_client import CatalogClient, EncodingClient, ServiceError, UploadClient, UploadRejected
from .job_poller import JobPoller
from .orchestrator import ViewOrchestrator
from .playback import AdaptivePlaybackController
from .reconciler import PostUploadReconciler

__all__ = [
    "CatalogClient",
    "EncodingClient",
    "UploadClient",
    "ServiceError",
    "UploadRejected",
    "JobPoller",
    "PostUploadReconciler",
    "AdaptivePlaybackController",
    "ViewOrchestrator",
]
