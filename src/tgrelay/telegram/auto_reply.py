"""Auto-reply engine: answers inbound messages that exactly match a trigger."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tgrelay.errors import RelayError
from tgrelay.telegram.gateway import InboundMessage, TelegramGateway

if TYPE_CHECKING:
    from tgrelay.storage.triggers import TriggerStore
    from tgrelay.telegram.session_registry import ManagedSession

logger = logging.getLogger(__name__)


class AutoReplyEngine:
    """Matches inbound messages against the owning account's trigger map.

    Rules:
    - Messages authored by the account itself are ignored
    - Senders without a username are logged and skipped (replies are
      addressed by username)
    - The trimmed text must equal a trigger's match text exactly
    """

    def __init__(self, gateway: TelegramGateway, triggers: TriggerStore) -> None:
        self._gateway = gateway
        self._triggers = triggers

    async def handle(self, session: ManagedSession, message: InboundMessage) -> str | None:
        """Process one inbound message for session.

        Returns:
            The reply text that was sent, or None if nothing was sent
        """
        if message.sender_id is not None and message.sender_id == session.self_id:
            return None

        text = message.text.strip()
        logger.info(f"Message for '{session.identity}' from @{message.sender_handle}: {text}")

        if not message.sender_username:
            logger.warning(
                f"Ignoring message for '{session.identity}' from {message.sender_handle}: "
                "sender has no username to reply to"
            )
            return None

        if not text:
            return None

        reply = self._triggers.get_user_trigger_map(session.identity).get(text)
        if reply is None:
            return None

        try:
            await self._gateway.send_message(session.connection, message.sender_username, reply)
        except RelayError as e:
            logger.error(
                f"Auto-reply from '{session.identity}' to @{message.sender_username} failed: {e}"
            )
            return None

        logger.info(f"Auto-replied from '{session.identity}' to @{message.sender_username}")
        return reply
