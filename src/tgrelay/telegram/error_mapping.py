"""Telegram error mapping to relay errors with readable messages.

Telethon raises one ``RPCError`` subclass per server error code. The web
layer only understands :class:`~tgrelay.errors.RelayError`, so every RPC
failure that reaches the gateway boundary is translated here.

Example:
    ```python
    from telethon import errors
    from tgrelay.telegram.error_mapping import to_relay_error

    try:
        await client.send_message(...)
    except errors.RPCError as e:
        # Technical: "A wait of 3600 seconds is required"
        # Relay error: RateLimitedError("Rate limit exceeded. Please wait 1 hour ...")
        raise to_relay_error(e) from e
    ```
"""

from __future__ import annotations

from telethon import errors

from tgrelay.errors import (
    ConnectFailureError,
    RateLimitedError,
    RelayError,
    TelegramRejectedError,
)

# Error type to readable message mappings
ERROR_MESSAGES = {
    # Authentication & session
    "AuthKeyUnregisteredError": "The stored session was revoked. Register the account again.",
    "SessionRevokedError": "The session was logged out from another device. Register the account again.",
    "SessionExpiredError": "The stored session has expired. Register the account again.",
    "AuthKeyDuplicatedError": "This session is in use elsewhere. Register the account again.",
    "UserDeactivatedError": "The Telegram account has been deactivated.",
    "UserDeactivatedBanError": "The Telegram account has been banned.",
    # Recipient refuses the message
    "UserIsBlockedError": "The recipient has blocked this account.",
    "UserPrivacyRestrictedError": "The recipient's privacy settings forbid this message.",
    "ChatWriteForbiddenError": "This account is not allowed to write to the recipient.",
    "InputUserDeactivatedError": "The recipient's account has been deleted.",
    "PeerIdInvalidError": "The recipient could not be found.",
    # Rate limiting (flood waits are formatted with their duration)
    "PeerFloodError": "Telegram is limiting messages from this account to new contacts. Please try again later.",
    # Message body
    "MessageEmptyError": "The message text is empty.",
    "MessageTooLongError": "The message text is too long.",
}


def _format_duration(seconds: int) -> str:
    """Format duration in seconds to human-readable string.

    Examples:
        >>> _format_duration(30)
        '30 seconds'
        >>> _format_duration(120)
        '2 minutes'
        >>> _format_duration(3600)
        '1 hour'
    """
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    else:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"


def get_user_friendly_message(error: errors.RPCError) -> str:
    """Convert a Telethon RPC error to a readable message.

    Args:
        error: Error raised by a Telethon request

    Returns:
        Message suitable for an API error body

    Examples:
        >>> from telethon.errors import FloodWaitError
        >>> get_user_friendly_message(FloodWaitError(request=None, capture=120))
        'Rate limit exceeded. Please wait 2 minutes before trying again.'
    """
    error_class = type(error).__name__

    # FloodWaitError and SlowModeWaitError carry the wait time
    seconds = getattr(error, "seconds", None)
    if isinstance(error, errors.FloodError) and seconds:
        return f"Rate limit exceeded. Please wait {_format_duration(int(seconds))} before trying again."

    if error_class in ERROR_MESSAGES:
        return ERROR_MESSAGES[error_class]

    return f"Telegram rejected the request: {error_class}"


def to_relay_error(error: errors.RPCError) -> RelayError:
    """Classify a Telethon RPC error as the matching relay error.

    - Flood waits and peer flood limits become :class:`RateLimitedError`
    - Revoked or unauthorized sessions become :class:`ConnectFailureError`,
      so the session registry drops the connection
    - Everything else becomes :class:`TelegramRejectedError`

    Args:
        error: Error raised by a Telethon request

    Returns:
        A RelayError carrying a readable message (not raised)
    """
    message = get_user_friendly_message(error)

    if isinstance(error, (errors.FloodError, errors.PeerFloodError)):
        seconds = getattr(error, "seconds", None)
        return RateLimitedError(message, retry_after=int(seconds) if seconds else None)

    if isinstance(error, (errors.UnauthorizedError, errors.AuthKeyError)):
        return ConnectFailureError(message)

    return TelegramRejectedError(message)
