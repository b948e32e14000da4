"""Telethon implementation of the gateway capability interface."""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any

from telethon import TelegramClient, errors, events
from telethon.sessions import StringSession

from tgrelay.errors import ConnectFailureError, InvalidArgumentError
from tgrelay.telegram.error_mapping import to_relay_error
from tgrelay.telegram.gateway import (
    HandshakeCallbacks,
    InboundHandler,
    InboundMessage,
    SelfIdentity,
)

if TYPE_CHECKING:
    from tgrelay.config import Settings

logger = logging.getLogger(__name__)

# Errors raised by Telethon when the network or the MTProto session fails
TRANSPORT_ERRORS = (ConnectionError, OSError, errors.RPCError)


class TelethonGateway:
    """Gateway backed by Telethon clients with in-memory StringSession credentials.

    Every connection is a fresh ``TelegramClient``; the credential string is
    the ``StringSession`` export, so nothing is written to ``.session`` files.

    Example:
        ```python
        gateway = TelethonGateway.from_settings(get_settings())
        client = gateway.create_connection(credential)
        await gateway.connect(client)
        await gateway.send_message(client, "me", "hello")
        ```
    """

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        *,
        proxy: tuple[Any, ...] | None = None,
        timeout: float = 30.0,
        connection_retries: int = 5,
        retry_delay: int = 1,
    ) -> None:
        self._api_id = api_id
        self._api_hash = api_hash
        self._proxy = proxy
        self._timeout = timeout
        self._connection_retries = connection_retries
        self._retry_delay = retry_delay
        self._subscribed: weakref.WeakSet[TelegramClient] = weakref.WeakSet()

    @classmethod
    def from_settings(cls, settings: Settings) -> TelethonGateway:
        return cls(
            settings.api_id,
            settings.api_hash,
            proxy=settings.proxy.to_telethon_proxy(),
            timeout=settings.connect_timeout,
        )

    def create_connection(self, credential: str | None = None) -> TelegramClient:
        return TelegramClient(
            StringSession(credential),
            self._api_id,
            self._api_hash,
            proxy=self._proxy,
            timeout=int(self._timeout),
            connection_retries=self._connection_retries,
            retry_delay=self._retry_delay,
        )

    async def connect(self, connection: TelegramClient) -> None:
        try:
            await connection.connect()
            authorized = await connection.is_user_authorized()
        except TRANSPORT_ERRORS as e:
            raise ConnectFailureError(f"Failed to connect: {type(e).__name__}: {e}") from e

        if not authorized:
            await self.disconnect(connection)
            raise ConnectFailureError(
                "Stored credential is no longer authorized. Register the account again."
            )

    async def start_handshake(
        self, connection: TelegramClient, callbacks: HandshakeCallbacks
    ) -> None:
        # Telethon only calls this after the code step raised
        # SessionPasswordNeededError. Signing in with an empty password would
        # make it request a second login code instead of failing.
        async def require_password() -> str:
            password = await callbacks.password()
            if not password:
                raise ConnectFailureError(
                    "Two-factor authentication is enabled; a password is required"
                )
            return password

        try:
            # Telethon awaits the callbacks when they return awaitables
            await connection.start(
                phone=callbacks.phone,
                code_callback=callbacks.code,
                password=require_password,
                max_attempts=1,
            )
        except (errors.PhoneCodeInvalidError, errors.PhoneCodeExpiredError) as e:
            raise ConnectFailureError(f"Verification code rejected: {type(e).__name__}") from e
        except errors.PasswordHashInvalidError as e:
            raise ConnectFailureError("Two-factor password rejected") from e
        except errors.PhoneNumberInvalidError as e:
            raise ConnectFailureError("Phone number rejected by Telegram") from e
        except (*TRANSPORT_ERRORS, RuntimeError) as e:
            raise ConnectFailureError(f"Sign-in failed: {type(e).__name__}: {e}") from e

    async def disconnect(self, connection: TelegramClient) -> None:
        try:
            if connection.is_connected():
                await connection.disconnect()
        except Exception as e:
            logger.warning(f"Error while disconnecting Telegram client: {e}")

    def is_connected(self, connection: TelegramClient) -> bool:
        return bool(connection.is_connected())

    async def send_message(self, connection: TelegramClient, target: str, text: str) -> None:
        try:
            await connection.send_message(target, text)
        except (errors.UsernameNotOccupiedError, errors.UsernameInvalidError, ValueError) as e:
            raise InvalidArgumentError(f"Cannot resolve recipient '{target}'") from e
        except errors.RPCError as e:
            logger.warning(f"Telegram refused message to '{target}': {type(e).__name__}: {e}")
            raise to_relay_error(e) from e
        except (ConnectionError, OSError) as e:
            raise ConnectFailureError(f"Failed to send message: {e}") from e

    def subscribe_inbound(self, connection: TelegramClient, handler: InboundHandler) -> None:
        if connection in self._subscribed:
            logger.debug("Inbound handler already attached to this client, skipping")
            return

        async def on_new_message(event: events.NewMessage.Event) -> None:
            sender = await event.get_sender()
            await handler(
                InboundMessage(
                    sender_id=event.sender_id,
                    sender_username=getattr(sender, "username", None),
                    sender_first_name=getattr(sender, "first_name", None),
                    text=event.raw_text or "",
                )
            )

        connection.add_event_handler(on_new_message, events.NewMessage())
        self._subscribed.add(connection)

    async def get_self_identity(self, connection: TelegramClient) -> SelfIdentity:
        try:
            me = await connection.get_me()
        except TRANSPORT_ERRORS as e:
            raise ConnectFailureError(f"Failed to fetch own account: {e}") from e
        if me is None:
            raise ConnectFailureError("Client is not signed in")
        return SelfIdentity(id=me.id, username=me.username or None)

    def export_credential(self, connection: TelegramClient) -> str:
        return StringSession.save(connection.session)
