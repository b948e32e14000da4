"""Error taxonomy for account orchestration.

Every error raised by the session registry, the registration coordinator or
the relay service derives from :class:`RelayError`. The web layer maps each
subclass to a client-facing status code (see
``tgrelay.web.exception_handlers``).
"""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for relay operations."""


class InvalidArgumentError(RelayError):
    """Raised when a required value is empty or malformed."""


class NotRegisteredError(RelayError):
    """Raised when no credential is stored for an account identity."""


class AlreadyInProgressError(RelayError):
    """Raised when a registration is started while another one is pending."""


class NoPendingRegistrationError(RelayError):
    """Raised when the confirm step is called without a pending registration."""


class PhoneMismatchError(RelayError):
    """Raised when the confirm step names a different phone than the pending one."""


class CodeAlreadySubmittedError(RelayError):
    """Raised when a second confirm arrives while the first one is still running."""


class ConnectFailureError(RelayError):
    """Raised when the Telegram transport fails to connect or authenticate."""


class TelegramRejectedError(RelayError):
    """Raised when Telegram refuses a request on an otherwise healthy connection."""


class RateLimitedError(TelegramRejectedError):
    """Raised when Telegram asks the account to slow down.

    Attributes:
        retry_after: Seconds Telegram asked to wait, when it said
    """

    def __init__(self, message: str, *, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RegistrationTimeoutError(RelayError):
    """Raised when the registration handshake does not finish in time."""
