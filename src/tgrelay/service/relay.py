"""Relay service: the application context that owns every account component.

One instance is created per FastAPI app (see ``tgrelay.web.app.lifespan``)
and passed to request handlers, so tests can build fully isolated instances
with a fake gateway and a temporary data directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from tgrelay.errors import InvalidArgumentError, RelayError
from tgrelay.storage.credentials import CredentialStore
from tgrelay.storage.triggers import TriggerRule, TriggerStore
from tgrelay.telegram.auto_reply import AutoReplyEngine
from tgrelay.telegram.gateway import SELF_TARGET, TelegramGateway
from tgrelay.telegram.registration import (
    DEFAULT_REGISTRATION_TIMEOUT,
    RegistrationCoordinator,
)
from tgrelay.telegram.session_registry import DEFAULT_CONNECT_TIMEOUT, SessionRegistry
from tgrelay.utils.identity import normalize_identity

if TYPE_CHECKING:
    from tgrelay.config import Settings

logger = logging.getLogger(__name__)


def _require_text(text: str) -> str:
    if not text.strip():
        raise InvalidArgumentError("Field `text` must not be empty")
    return text


class RelayService:
    """Call contract behind the HTTP surface.

    Wires the credential and trigger stores, the session registry, the
    registration coordinator and the auto-reply engine together.

    Example:
        ```python
        service = RelayService.from_settings(settings)
        service.start()  # attach listeners for accounts with triggers
        await service.send_to_user("alice", "bob", "hi")
        await service.shutdown()
        ```
    """

    def __init__(
        self,
        gateway: TelegramGateway,
        credentials: CredentialStore,
        triggers: TriggerStore,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        registration_timeout: float = DEFAULT_REGISTRATION_TIMEOUT,
    ) -> None:
        self.gateway = gateway
        self.credentials = credentials
        self.triggers = triggers
        self.engine = AutoReplyEngine(gateway, triggers)
        self.registry = SessionRegistry(
            gateway,
            credentials,
            on_message=self.engine.handle,
            connect_timeout=connect_timeout,
        )
        self.registration = RegistrationCoordinator(
            gateway, credentials, timeout=registration_timeout
        )
        self._hydration_task: asyncio.Task[dict[str, str | None]] | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, *, gateway: TelegramGateway | None = None
    ) -> RelayService:
        if gateway is None:
            from tgrelay.telegram.telethon_gateway import TelethonGateway

            gateway = TelethonGateway.from_settings(settings)
        return cls(
            gateway,
            CredentialStore(settings.credentials_path),
            TriggerStore(settings.triggers_path),
            connect_timeout=settings.connect_timeout,
            registration_timeout=settings.registration_timeout,
        )

    async def send_to_me(self, from_: str, text: str) -> None:
        """Send text to the account's own Saved Messages."""
        await self.registry.send_message(from_, SELF_TARGET, _require_text(text))

    async def send_to_user(self, from_: str, to: str, text: str) -> None:
        target = normalize_identity(to, field="to")
        await self.registry.send_message(from_, target, _require_text(text))

    async def add_trigger(self, username: str, trigger: str, reply: str) -> TriggerRule:
        """Persist a trigger rule and make sure the account is listening."""
        rule = await self.triggers.persist_trigger(username, trigger, reply)
        await self.registry.ensure_session(username)
        return rule

    async def clear_triggers(self, username: str) -> bool:
        return await self.triggers.clear(username)

    async def begin_registration(self, phone: str) -> dict[str, str]:
        return await self.registration.begin_registration(phone)

    async def confirm_registration(
        self, phone: str, code: str, password: str | None = None
    ) -> dict[str, str]:
        return await self.registration.confirm_registration(phone, code, password)

    async def hydrate(self) -> dict[str, str | None]:
        """Load persisted triggers and connect every account that has some.

        Returns:
            Mapping of identity -> error message (None when connected)
        """
        identities = await self.triggers.hydrate()
        results = await asyncio.gather(
            *(self.registry.ensure_session(identity) for identity in identities),
            return_exceptions=True,
        )

        outcome: dict[str, str | None] = {}
        for identity, result in zip(identities, results, strict=True):
            if isinstance(result, RelayError):
                logger.warning(f"Could not attach listener for '{identity}': {result}")
                outcome[identity] = str(result)
            elif isinstance(result, BaseException):
                logger.error(
                    f"Unexpected error attaching listener for '{identity}'", exc_info=result
                )
                outcome[identity] = str(result)
            else:
                outcome[identity] = None
        return outcome

    def start(self) -> asyncio.Task[dict[str, str | None]]:
        """Run hydrate() in the background so startup does not wait on Telegram."""
        if self._hydration_task is None or self._hydration_task.done():
            self._hydration_task = asyncio.create_task(self.hydrate(), name="trigger-hydration")
        return self._hydration_task

    async def shutdown(self) -> None:
        """Stop background work and disconnect every account."""
        if self._hydration_task is not None and not self._hydration_task.done():
            self._hydration_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._hydration_task
        await self.registration.cancel()
        await self.registry.disconnect_all()
        logger.info("Relay service stopped")
