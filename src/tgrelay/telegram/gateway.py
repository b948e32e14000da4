"""Capability interface consumed from the Telegram wire client.

The orchestration layer (session registry, registration coordinator,
auto-reply engine) only talks to Telegram through :class:`TelegramGateway`.
``tgrelay.telegram.telethon_gateway`` provides the production adapter;
tests plug in a fake.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

# Opaque per-connection object owned by the gateway (a TelegramClient for Telethon)
Connection = Any

# Target accepted by send_message for the account's own "Saved Messages"
SELF_TARGET = "me"


@dataclass(frozen=True)
class SelfIdentity:
    """The account a connection is logged in as."""

    id: int
    username: str | None = None


@dataclass(frozen=True)
class InboundMessage:
    """A new message observed on a connection."""

    sender_id: int | None
    sender_username: str | None
    sender_first_name: str | None
    text: str

    @property
    def sender_handle(self) -> str:
        """Human readable sender for log lines."""
        return self.sender_username or self.sender_first_name or "Unknown"


InboundHandler = Callable[[InboundMessage], Awaitable[None]]


@dataclass(frozen=True)
class HandshakeCallbacks:
    """Prompts answered during the phone login handshake.

    Each callback may block until the value becomes available; the
    registration coordinator wires code and password to pending values
    that are supplied by a later API call.
    """

    phone: Callable[[], Awaitable[str]]
    code: Callable[[], Awaitable[str]]
    password: Callable[[], Awaitable[str]]


class TelegramGateway(Protocol):
    """Protocol for the wire client (for dependency injection)."""

    def create_connection(self, credential: str | None = None) -> Connection:
        """Create a connection handle, importing credential when given."""
        ...

    async def connect(self, connection: Connection) -> None:
        """Connect using the imported credential.

        Raises:
            ConnectFailureError: If the transport fails or the credential is not authorized
        """
        ...

    async def start_handshake(self, connection: Connection, callbacks: HandshakeCallbacks) -> None:
        """Connect and sign in through the phone/code/password handshake."""
        ...

    async def disconnect(self, connection: Connection) -> None:
        """Disconnect; must not raise for a handle that is not connected."""
        ...

    def is_connected(self, connection: Connection) -> bool:
        """Whether the transport behind connection is still up."""
        ...

    async def send_message(self, connection: Connection, target: str, text: str) -> None:
        """Send text to a username, or to SELF_TARGET."""
        ...

    def subscribe_inbound(self, connection: Connection, handler: InboundHandler) -> None:
        """Deliver every new message on connection to handler."""
        ...

    async def get_self_identity(self, connection: Connection) -> SelfIdentity:
        ...

    def export_credential(self, connection: Connection) -> str:
        """Serialize the connection's authorization for later reconnects."""
        ...
