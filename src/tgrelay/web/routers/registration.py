"""Account registration endpoints (phone -> code -> optional 2FA password)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from tgrelay.web.dependencies import Relay

router = APIRouter(tags=["registration"])


class RegisterRequest(BaseModel):
    phone: str


class ConfirmRegistrationRequest(BaseModel):
    phone: str
    code: str
    password: str | None = None


@router.post("/register")
async def register(body: RegisterRequest, relay: Relay) -> dict[str, Any]:
    """Start registration; Telegram sends a login code to the phone."""
    result = await relay.begin_registration(body.phone)
    return {"ok": True, **result}


@router.post("/register/confirm")
async def confirm_registration(body: ConfirmRegistrationRequest, relay: Relay) -> dict[str, Any]:
    """Submit the login code (and 2FA password if enabled) and wait for sign-in."""
    result = await relay.confirm_registration(body.phone, body.code, body.password)
    return {"ok": True, **result}
