"""Outbound message endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from tgrelay.web.dependencies import Relay

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])


class SendToMeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from", description="Account to send from")
    text: str


class SendToUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from", description="Account to send from")
    to: str = Field(description="Recipient username")
    text: str


@router.post("/send-to-me")
async def send_to_me(body: SendToMeRequest, relay: Relay) -> dict[str, Any]:
    """Send a message to the account's own Saved Messages."""
    await relay.send_to_me(body.from_, body.text)
    return {"ok": True}


@router.post("/send-to-user")
async def send_to_user(body: SendToUserRequest, relay: Relay) -> dict[str, Any]:
    await relay.send_to_user(body.from_, body.to, body.text)
    return {"ok": True}
