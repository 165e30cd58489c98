from fastapi import Request, WebSocket

from services.api_client import CatalogClient
from services.orchestrator import ViewOrchestrator


def get_orchestrator(request: Request) -> ViewOrchestrator:
    return request.app.state.orchestrator


def get_catalog(request: Request) -> CatalogClient:
    return request.app.state.catalog


def ws_orchestrator(websocket: WebSocket) -> ViewOrchestrator:
    return websocket.app.state.orchestrator
