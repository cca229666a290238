"""
Response models for the monitoring API.

All responses are read-only views of watcher state.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"


class StatusResponse(BaseModel):
    """Current watcher state, marker and queue figures."""

    model_config = ConfigDict(extra="forbid")

    running: bool
    state: str
    marker: int
    queue_depth: int
    processed_items: int
    sweeps: int
    coalesced_triggers: int
    last_sweep: Optional[Dict[str, Any]] = None


class TriggerResponse(BaseModel):
    """Response for trigger and start endpoints."""

    model_config = ConfigDict(extra="forbid")

    accepted: bool
    message: str
