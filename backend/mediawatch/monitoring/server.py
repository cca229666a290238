"""
Monitoring server endpoints.

Read-only HTTP API for watcher state, plus two control endpoints for local
tooling: announcing a change and making sure the watcher is running.
Intended for localhost access only.
"""

from fastapi import APIRouter, FastAPI, HTTPException, Request

from ..persistence import PersistenceError
from .models import HealthResponse, StatusResponse, TriggerResponse


router = APIRouter(prefix="/monitor", tags=["monitoring"])
control_router = APIRouter(prefix="/control", tags=["control"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Reports "stopped" when the sweep runner is not alive.
    """
    mediawatch = request.app.state.mediawatch
    return HealthResponse(status="ok" if mediawatch.service.running else "stopped")


@router.get("/status", response_model=StatusResponse)
def get_status(request: Request):
    """
    Current watcher status.

    Returns:
        StatusResponse with marker, queue depth, ledger size and the
        outcome of the most recent sweep
    """
    mediawatch = request.app.state.mediawatch
    try:
        return StatusResponse(**mediawatch.status())
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=f"State unavailable: {e}")


@control_router.post("/notify", response_model=TriggerResponse)
async def notify_change(request: Request):
    """Announce a change in the media index. The watcher re-checks everything since its marker."""
    mediawatch = request.app.state.mediawatch
    if mediawatch.service.notify_change():
        return TriggerResponse(accepted=True, message="Sweep requested")
    return TriggerResponse(accepted=True, message="Coalesced into pending sweep")


@control_router.post("/start", response_model=TriggerResponse)
async def ensure_running(request: Request):
    """Start the watcher if it is not running. Starting a running watcher is a no-op."""
    mediawatch = request.app.state.mediawatch
    if mediawatch.start():
        return TriggerResponse(accepted=True, message="Service started")
    return TriggerResponse(accepted=True, message="Service previously started")


def create_app(mediawatch) -> FastAPI:
    """Build the monitoring application around a MediaWatch instance."""
    app = FastAPI(title="MediaWatch Monitor", version="0.1.0")
    app.state.mediawatch = mediawatch
    app.include_router(router)
    app.include_router(control_router)
    return app
