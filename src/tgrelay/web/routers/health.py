"""Health check endpoint router."""

from __future__ import annotations

import time
from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from tgrelay import __version__
from tgrelay.web.dependencies import Relay

router = APIRouter(tags=["health"])

_start_time = time.time()


class SessionStatus(BaseModel):
    """One live account connection."""

    identity: str
    connected_at: datetime | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool = True
    version: str = Field(description="Application version")
    uptime_seconds: float = Field(description="Seconds since the process started")
    sessions: list[str] = Field(description="Accounts with a live connection")
    connections: list[SessionStatus] = Field(
        default_factory=list, description="Live connections with their connect time"
    )
    registration: str = Field(description="Current registration step")
    registration_started_at: datetime | None = Field(
        default=None, description="When the pending registration began"
    )


def _as_datetime(timestamp: float | None) -> datetime | None:
    return datetime.fromtimestamp(timestamp, tz=UTC) if timestamp is not None else None


@router.get("/health", response_model=HealthResponse)
async def health_check(relay: Relay) -> HealthResponse:
    return HealthResponse(
        version=__version__,
        uptime_seconds=round(time.time() - _start_time, 1),
        sessions=relay.registry.list_sessions(),
        connections=[
            SessionStatus(identity=info["identity"], connected_at=_as_datetime(info["connected_at"]))
            for info in relay.registry.describe_sessions()
        ],
        registration=relay.registration.state.value,
        registration_started_at=_as_datetime(relay.registration.pending_since),
    )
