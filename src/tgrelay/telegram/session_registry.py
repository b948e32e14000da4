"""Session registry: one live Telegram connection per account identity."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tgrelay.errors import ConnectFailureError, NotRegisteredError
from tgrelay.telegram.gateway import Connection, InboundMessage, TelegramGateway
from tgrelay.utils.identity import normalize_identity

if TYPE_CHECKING:
    from tgrelay.storage.credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 30.0


@dataclass
class ManagedSession:
    """Runtime state for one connected account. Never persisted."""

    identity: str
    connection: Connection
    connected: bool = False
    self_id: int | None = None
    listener_attached: bool = False
    connected_at: float | None = None


SessionMessageHandler = Callable[[ManagedSession, InboundMessage], Awaitable[Any]]


class SessionRegistry:
    """Process-wide table of live connections keyed by account identity.

    Features:
    - Lazy connect from the stored credential on first use
    - Concurrent callers for the same identity share one in-flight connect
    - Exactly one inbound listener per session, attached on connect
    - Failed connects leave no session behind, so the next call retries
    - A session whose transport dropped is evicted and reconnected on next use

    Example:
        ```python
        registry = SessionRegistry(gateway, credential_store, on_message=engine.handle)
        session = await registry.ensure_session("alice")
        await registry.send_message("alice", "bob", "hi")
        ```
    """

    def __init__(
        self,
        gateway: TelegramGateway,
        credentials: CredentialStore,
        *,
        on_message: SessionMessageHandler | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._on_message = on_message
        self._connect_timeout = connect_timeout
        self._sessions: dict[str, ManagedSession] = {}
        self._connecting: dict[str, asyncio.Task[ManagedSession]] = {}

    def get(self, identity: str) -> ManagedSession | None:
        return self._sessions.get(identity.strip())

    def list_sessions(self) -> list[str]:
        """Identities with a live session."""
        return [identity for identity, session in self._sessions.items() if session.connected]

    def is_connecting(self, identity: str) -> bool:
        return identity.strip() in self._connecting

    async def ensure_session(self, identity: str) -> ManagedSession:
        """Return the connected session for identity, connecting if needed.

        A cached session is only reused while the gateway still reports its
        connection as up.

        Raises:
            InvalidArgumentError: If identity is blank
            NotRegisteredError: If no credential is stored for identity
            ConnectFailureError: If the connection fails or times out
        """
        identity = normalize_identity(identity)

        session = self._sessions.get(identity)
        if session is not None:
            if session.connected and self._gateway.is_connected(session.connection):
                return session
            await self._evict(session, "connection lost")

        pending = self._connecting.get(identity)
        if pending is None:
            pending = asyncio.create_task(self._connect(identity), name=f"connect:{identity}")
            self._connecting[identity] = pending
        else:
            logger.debug(f"Joining in-flight connect for '{identity}'")

        # A cancelled caller must not cancel the connect other callers share
        return await asyncio.shield(pending)

    async def _connect(self, identity: str) -> ManagedSession:
        try:
            credentials = await self._credentials.load()
            credential = credentials.get(identity)
            if not credential:
                raise NotRegisteredError(
                    f"No saved credential for '{identity}'. Register the account first."
                )

            connection = self._gateway.create_connection(credential)
            session = ManagedSession(identity=identity, connection=connection)
            try:
                await asyncio.wait_for(
                    self._gateway.connect(connection), timeout=self._connect_timeout
                )
                me = await self._gateway.get_self_identity(connection)
            except TimeoutError as e:
                await self._gateway.disconnect(connection)
                raise ConnectFailureError(
                    f"Connection timeout for '{identity}' after {self._connect_timeout}s"
                ) from e
            except Exception:
                await self._gateway.disconnect(connection)
                raise

            session.self_id = me.id
            session.connected = True
            session.connected_at = time.time()
            self._attach_listener(session)
            self._sessions[identity] = session
            logger.info(f"Session '{identity}' connected (self id {me.id})")
            return session
        except Exception as e:
            logger.warning(f"Connect failed for '{identity}': {e}")
            raise
        finally:
            self._connecting.pop(identity, None)

    def _attach_listener(self, session: ManagedSession) -> None:
        if session.listener_attached or self._on_message is None:
            return

        handler = self._on_message

        async def deliver(message: InboundMessage) -> None:
            await handler(session, message)

        self._gateway.subscribe_inbound(session.connection, deliver)
        session.listener_attached = True
        logger.info(f"Listening for messages on '{session.identity}'")

    async def send_message(self, identity: str, target: str, text: str) -> None:
        """Send text from identity's account to target (a username or "me")."""
        session = await self.ensure_session(identity)
        try:
            await self._gateway.send_message(session.connection, target, text)
        except ConnectFailureError as e:
            # Next call reconnects from the stored credential
            await self._evict(session, str(e))
            raise
        logger.info(f"Message sent from '{session.identity}' to '{target}'")

    def describe_sessions(self) -> list[dict[str, Any]]:
        """Identity and connect time (epoch seconds) of every live session."""
        return [
            {"identity": session.identity, "connected_at": session.connected_at}
            for session in self._sessions.values()
            if session.connected
        ]

    async def _evict(self, session: ManagedSession, reason: str) -> None:
        # Popped before awaiting so concurrent callers start a fresh connect
        if self._sessions.get(session.identity) is session:
            del self._sessions[session.identity]
        session.connected = False
        session.connected_at = None
        logger.warning(f"Dropping session '{session.identity}': {reason}")
        await self._gateway.disconnect(session.connection)

    async def disconnect(self, identity: str) -> bool:
        """Disconnect and forget the session. Returns False if none existed."""
        session = self._sessions.pop(identity.strip(), None)
        if session is None:
            return False
        session.connected = False
        await self._gateway.disconnect(session.connection)
        logger.info(f"Session '{session.identity}' disconnected")
        return True

    async def disconnect_all(self) -> None:
        """Disconnect every session (for shutdown)."""
        for identity in list(self._sessions):
            await self.disconnect(identity)
