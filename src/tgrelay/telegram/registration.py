"""Registration coordinator for onboarding an account by phone number.

The handshake runs as a background task that starts on the first API call
(``begin_registration``) and suspends inside the gateway's code and password
prompts until the second API call (``confirm_registration``) supplies them.

Registration state is intentionally kept in memory. If the server restarts
mid-handshake, the registration starts over.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from tgrelay.errors import (
    AlreadyInProgressError,
    CodeAlreadySubmittedError,
    InvalidArgumentError,
    NoPendingRegistrationError,
    PhoneMismatchError,
    RegistrationTimeoutError,
)
from tgrelay.telegram.gateway import Connection, HandshakeCallbacks, TelegramGateway
from tgrelay.utils.identity import normalize_phone

if TYPE_CHECKING:
    from tgrelay.storage.credentials import CredentialStore

logger = logging.getLogger(__name__)

# Identity used when the registered account has no username
UNKNOWN_IDENTITY = "unknown_user"

DEFAULT_REGISTRATION_TIMEOUT = 600.0


class RegistrationStep(str, Enum):
    """Current step in the registration flow."""

    IDLE = "idle"  # No registration pending
    CODE_REQUESTED = "code_requested"  # Handshake running, waiting for code/password
    COMPLETED = "completed"  # Credential persisted
    FAILED = "failed"  # Handshake failed, state released


class PendingValue:
    """A value that one task waits for and another task supplies later."""

    def __init__(self) -> None:
        self._future: asyncio.Future[str] = asyncio.get_running_loop().create_future()

    @property
    def supplied(self) -> bool:
        return self._future.done()

    async def wait(self) -> str:
        return await asyncio.shield(self._future)

    def supply(self, value: str) -> None:
        if self._future.done():
            raise CodeAlreadySubmittedError(
                "A verification code was already submitted for this registration"
            )
        self._future.set_result(value)

    def cancel(self) -> None:
        if not self._future.done():
            self._future.cancel()


@dataclass
class PendingRegistration:
    """State of the single in-flight registration."""

    phone: str
    code: PendingValue
    password: PendingValue
    step: RegistrationStep = RegistrationStep.CODE_REQUESTED
    task: asyncio.Task[str] | None = None
    identity: str | None = None
    created_at: float = field(default_factory=time.time)


class RegistrationCoordinator:
    """Drives the phone -> code -> password handshake for one account at a time.

    Example:
        ```python
        coordinator = RegistrationCoordinator(gateway, credential_store)
        await coordinator.begin_registration("+15551234")
        # ... user receives the code in Telegram ...
        await coordinator.confirm_registration("+15551234", "12345")
        ```
    """

    def __init__(
        self,
        gateway: TelegramGateway,
        credentials: CredentialStore,
        *,
        timeout: float = DEFAULT_REGISTRATION_TIMEOUT,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._timeout = timeout
        self._pending: PendingRegistration | None = None
        # Connection used by the handshake, owned by the coordinator only
        self._connection: Connection | None = None
        self.last_outcome: RegistrationStep | None = None

    @property
    def state(self) -> RegistrationStep:
        if self._pending is None:
            return RegistrationStep.IDLE
        return self._pending.step

    @property
    def pending_phone(self) -> str | None:
        return self._pending.phone if self._pending else None

    @property
    def pending_since(self) -> float | None:
        """Epoch seconds when the pending registration started."""
        return self._pending.created_at if self._pending else None

    async def begin_registration(self, phone: str) -> dict[str, str]:
        """Start the handshake for phone and return without waiting for it.

        Raises:
            AlreadyInProgressError: If another registration is pending
            InvalidArgumentError: If phone is blank
        """
        if self._pending is not None:
            raise AlreadyInProgressError("Another registration is already in progress")

        normalized_phone = normalize_phone(phone)

        pending = PendingRegistration(
            phone=normalized_phone,
            code=PendingValue(),
            password=PendingValue(),
        )
        # Claimed before the first suspension point so a concurrent begin fails
        self._pending = pending
        pending.task = asyncio.create_task(self._run(pending), name="registration")
        pending.task.add_done_callback(self._log_outcome)

        logger.info(f"Registration started for {normalized_phone}, waiting for code")
        return {"status": "code_sent"}

    async def confirm_registration(
        self, phone: str, code: str, password: str | None = None
    ) -> dict[str, str]:
        """Supply the code (and optional 2FA password) and wait for the handshake.

        Raises:
            NoPendingRegistrationError: If no registration is pending
            PhoneMismatchError: If phone differs from the pending one
            CodeAlreadySubmittedError: If another confirm is already waiting
            InvalidArgumentError: If phone or code is blank
            ConnectFailureError: If Telegram rejects the sign-in
            RegistrationTimeoutError: If the handshake ran out of time
        """
        pending = self._pending
        if pending is None or pending.step != RegistrationStep.CODE_REQUESTED:
            raise NoPendingRegistrationError("No pending registration. Call the first step again.")

        normalized_phone = normalize_phone(phone)
        if normalized_phone != pending.phone:
            raise PhoneMismatchError("Phone number does not match the pending registration")

        normalized_code = (code or "").strip()
        if not normalized_code:
            raise InvalidArgumentError("Verification code is required")

        task = pending.task
        if task is None:
            raise NoPendingRegistrationError("Registration handshake was never started")

        pending.code.supply(normalized_code)
        # Accounts without 2FA never ask, but the slot must not block if they do
        pending.password.supply((password or "").strip())

        identity = await asyncio.shield(task)
        return {"status": "registered", "username": identity}

    async def cancel(self) -> None:
        """Abort a pending registration (for shutdown)."""
        pending = self._pending
        if pending is None or pending.task is None:
            return
        pending.task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await pending.task
        # A task cancelled before its first step never reaches its cleanup
        pending.code.cancel()
        pending.password.cancel()
        await self._release_connection()
        if self._pending is pending:
            self._pending = None
        logger.info("Pending registration cancelled")

    async def _run(self, pending: PendingRegistration) -> str:
        try:
            await self._release_connection()
            connection = self._gateway.create_connection()
            self._connection = connection

            async def provide_phone() -> str:
                return pending.phone

            callbacks = HandshakeCallbacks(
                phone=provide_phone,
                code=pending.code.wait,
                password=pending.password.wait,
            )
            try:
                await asyncio.wait_for(
                    self._gateway.start_handshake(connection, callbacks), timeout=self._timeout
                )
            except TimeoutError as e:
                raise RegistrationTimeoutError(
                    f"Registration for {pending.phone} did not complete within {self._timeout}s"
                ) from e

            me = await self._gateway.get_self_identity(connection)
            credential = self._gateway.export_credential(connection)
            identity = me.username or UNKNOWN_IDENTITY
            await self._credentials.persist(identity, credential)

            pending.identity = identity
            pending.step = RegistrationStep.COMPLETED
            logger.info(f"Registration completed for '{identity}'")
            return identity
        except BaseException:
            pending.step = RegistrationStep.FAILED
            raise
        finally:
            pending.code.cancel()
            pending.password.cancel()
            await self._release_connection()
            if self._pending is pending:
                self._pending = None
            self.last_outcome = pending.step

    async def _release_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await self._gateway.disconnect(connection)

    @staticmethod
    def _log_outcome(task: asyncio.Task[str]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Registration failed: {type(error).__name__}: {error}")
