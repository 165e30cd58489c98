from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, load_settings
from routes import files, jobs, uploads, view
from services.api_client import CatalogClient, EncodingClient, UploadClient
from services.job_poller import JobPoller
from services.orchestrator import ViewOrchestrator
from services.playback import AdaptivePlaybackController
from services.reconciler import PostUploadReconciler


def build_orchestrator(settings: Settings, http: httpx.AsyncClient) -> ViewOrchestrator:
    encoding = EncodingClient(http, settings.encoding_service_url)
    return ViewOrchestrator(
        uploads=UploadClient(http, settings.upload_service_url),
        encoding=encoding,
        poller=JobPoller(encoding, interval=settings.job_poll_interval_seconds),
        reconciler=PostUploadReconciler(
            encoding,
            base_delay=settings.reconcile_base_delay_seconds,
            max_attempts=settings.reconcile_max_attempts,
        ),
        controller=AdaptivePlaybackController(),
    )


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the view service.

    `transport` replaces the network for every collaborator call (tests pass
    an httpx.MockTransport).
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        timeout = httpx.Timeout(settings.http_timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as http:
            orchestrator = build_orchestrator(settings, http)
            app.state.catalog = CatalogClient(http, settings.catalog_service_url)
            app.state.orchestrator = orchestrator
            await orchestrator.mount()
            try:
                yield
            finally:
                await orchestrator.unmount()

    app = FastAPI(title="Video Stream View API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(view.router, prefix="/api")
    app.include_router(jobs.router, prefix="/api")
    app.include_router(uploads.router, prefix="/api")
    app.include_router(files.router, prefix="/api")
    return app
