"""Auto-reply trigger endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from tgrelay.web.dependencies import Relay

router = APIRouter(tags=["triggers"])


class AddTriggerRequest(BaseModel):
    username: str
    trigger: str
    reply: str


class ClearTriggersRequest(BaseModel):
    username: str


@router.post("/trigger-message")
async def add_trigger(body: AddTriggerRequest, relay: Relay) -> dict[str, Any]:
    """Store a trigger and start listening on the account.

    The rule is persisted before connecting, so it survives a failed connect
    and becomes active once the account is reachable.
    """
    rule = await relay.add_trigger(body.username, body.trigger, body.reply)
    return {"ok": True, "trigger": rule.match_text, "reply": rule.reply_text}


@router.delete("/trigger-message")
async def clear_triggers(body: ClearTriggersRequest, relay: Relay) -> dict[str, Any]:
    removed = await relay.clear_triggers(body.username)
    return {"ok": True, "removed": removed}
