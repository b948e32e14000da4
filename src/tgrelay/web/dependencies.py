"""Dependency injection helpers for FastAPI routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from tgrelay.service.relay import RelayService


def get_relay_service(request: Request) -> RelayService:
    """Return the RelayService created by the app lifespan."""
    service: RelayService | None = getattr(request.app.state, "relay", None)
    if service is None:
        raise RuntimeError("Relay service is not initialized; is the app lifespan running?")
    return service


Relay = Annotated[RelayService, Depends(get_relay_service)]
