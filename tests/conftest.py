"""Pytest configuration and shared fixtures for tgrelay tests.

Fixtures:
- isolated_tmp_dir: Isolated temporary directory (auto-cleanup)
- gateway: FakeGateway recording every call made through the gateway interface
- credential_store / trigger_store: stores backed by the isolated directory
- relay: RelayService wired to the fake gateway with short timeouts
- settings: Settings pointing at the isolated directory
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from tgrelay.config import Settings, reset_settings
from tgrelay.errors import ConnectFailureError
from tgrelay.service.relay import RelayService
from tgrelay.storage.credentials import CredentialStore
from tgrelay.storage.triggers import TriggerStore
from tgrelay.telegram.gateway import (
    HandshakeCallbacks,
    InboundHandler,
    InboundMessage,
    SelfIdentity,
)


class FakeConnection:
    """Connection handle handed out by FakeGateway."""

    def __init__(self, credential: str | None) -> None:
        self.credential = credential
        self.connected = False
        self.handlers: list[InboundHandler] = []


class FakeGateway:
    """In-memory gateway for testing the orchestration layer.

    Records connects, subscriptions and sent messages. Failures are
    configured per instance; ``handshake_errors`` is consumed one error per
    handshake attempt.
    """

    def __init__(
        self,
        *,
        self_id: int = 1000,
        username: str | None = "alice",
        connect_delay: float = 0.0,
        handshake_delay: float = 0.0,
        hang_connect: bool = False,
        connect_error: Exception | None = None,
        send_error: Exception | None = None,
        handshake_errors: list[Exception] | None = None,
        password_required: str | None = None,
    ) -> None:
        self.self_id = self_id
        self.username = username
        self.connect_delay = connect_delay
        self.handshake_delay = handshake_delay
        self.hang_connect = hang_connect
        self.connect_error = connect_error
        self.send_error = send_error
        self.handshake_errors = list(handshake_errors or [])
        self.password_required = password_required

        self.connections: list[FakeConnection] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.subscribe_calls = 0
        self.handshake_inputs: list[dict[str, str]] = []
        self.sent: list[tuple[FakeConnection, str, str]] = []

    def create_connection(self, credential: str | None = None) -> FakeConnection:
        connection = FakeConnection(credential)
        self.connections.append(connection)
        return connection

    async def connect(self, connection: FakeConnection) -> None:
        self.connect_calls += 1
        if self.connect_delay > 0:
            await asyncio.sleep(self.connect_delay)
        if self.hang_connect:
            await asyncio.sleep(100)  # Will timeout
        if self.connect_error is not None:
            raise self.connect_error
        connection.connected = True

    async def start_handshake(
        self, connection: FakeConnection, callbacks: HandshakeCallbacks
    ) -> None:
        inputs = {"phone": await callbacks.phone(), "code": await callbacks.code()}
        if self.handshake_delay > 0:
            await asyncio.sleep(self.handshake_delay)
        if self.password_required is not None:
            inputs["password"] = await callbacks.password()
        self.handshake_inputs.append(inputs)

        if self.handshake_errors:
            raise self.handshake_errors.pop(0)
        if self.password_required is not None and inputs["password"] != self.password_required:
            raise ConnectFailureError("Two-factor password rejected")
        connection.connected = True

    async def disconnect(self, connection: FakeConnection) -> None:
        self.disconnect_calls += 1
        connection.connected = False

    def is_connected(self, connection: FakeConnection) -> bool:
        return connection.connected

    async def send_message(self, connection: FakeConnection, target: str, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((connection, target, text))

    def subscribe_inbound(self, connection: FakeConnection, handler: InboundHandler) -> None:
        self.subscribe_calls += 1
        connection.handlers.append(handler)

    async def get_self_identity(self, connection: FakeConnection) -> SelfIdentity:
        return SelfIdentity(id=self.self_id, username=self.username)

    def export_credential(self, connection: FakeConnection) -> str:
        return f"session-for-{self.username or 'nobody'}"

    async def deliver(self, connection: FakeConnection, message: InboundMessage) -> None:
        """Simulate an inbound message arriving on connection."""
        for handler in connection.handlers:
            await handler(message)

    def sent_texts(self) -> list[tuple[str, str]]:
        return [(target, text) for _, target, text in self.sent]


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def isolated_tmp_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Provide an isolated temporary directory that is auto-cleaned.

    Yields:
        Path to isolated temporary directory
    """
    test_dir = tmp_path / "test_workspace"
    test_dir.mkdir(parents=True, exist_ok=True)
    yield test_dir


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def credentials_path(isolated_tmp_dir: Path) -> Path:
    return isolated_tmp_dir / "credentials.json"


@pytest.fixture
def triggers_path(isolated_tmp_dir: Path) -> Path:
    return isolated_tmp_dir / "triggers.json"


@pytest.fixture
def credential_store(credentials_path: Path) -> CredentialStore:
    return CredentialStore(credentials_path)


@pytest.fixture
def trigger_store(triggers_path: Path) -> TriggerStore:
    return TriggerStore(triggers_path)


@pytest.fixture
def relay(
    gateway: FakeGateway, credential_store: CredentialStore, trigger_store: TriggerStore
) -> RelayService:
    return RelayService(
        gateway,
        credential_store,
        trigger_store,
        connect_timeout=0.5,
        registration_timeout=2.0,
    )


@pytest.fixture
def settings(
    isolated_tmp_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Settings, None, None]:
    """Settings isolated from the environment and any local .env file."""
    for name in ("TGRELAY_DEBUG", "TGRELAY_DATA_DIR", "TGRELAY_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield Settings(
        _env_file=None,  # type: ignore[call-arg]
        data_dir=isolated_tmp_dir,
        api_id=12345,
        api_hash="0123456789abcdef0123456789abcdef",
        connect_timeout=1.0,
        registration_timeout=10.0,
    )
    reset_settings()
