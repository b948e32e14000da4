"""Tests for Telegram error mapping module."""

from __future__ import annotations

import pytest
from telethon import errors

from tgrelay.errors import (
    ConnectFailureError,
    RateLimitedError,
    TelegramRejectedError,
)
from tgrelay.telegram.error_mapping import (
    _format_duration,
    get_user_friendly_message,
    to_relay_error,
)


class TestFormatDuration:
    """Tests for _format_duration helper function."""

    def test_format_seconds(self) -> None:
        assert _format_duration(1) == "1 second"
        assert _format_duration(59) == "59 seconds"

    def test_format_minutes(self) -> None:
        assert _format_duration(60) == "1 minute"
        assert _format_duration(3599) == "59 minutes"

    def test_format_hours(self) -> None:
        assert _format_duration(3600) == "1 hour"
        assert _format_duration(7200) == "2 hours"


class TestGetUserFriendlyMessage:
    """Tests for readable messages."""

    def test_flood_wait_includes_duration(self) -> None:
        message = get_user_friendly_message(errors.FloodWaitError(request=None, capture=3600))

        assert message == "Rate limit exceeded. Please wait 1 hour before trying again."

    def test_slow_mode_includes_duration(self) -> None:
        message = get_user_friendly_message(errors.SlowModeWaitError(request=None, capture=30))

        assert "30 seconds" in message

    def test_known_error(self) -> None:
        message = get_user_friendly_message(errors.UserPrivacyRestrictedError(request=None))

        assert message == "The recipient's privacy settings forbid this message."

    def test_unknown_error_names_the_class(self) -> None:
        message = get_user_friendly_message(errors.ChatIdInvalidError(request=None))

        assert message == "Telegram rejected the request: ChatIdInvalidError"


class TestToRelayError:
    """Tests for classifying RPC errors."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (errors.FloodWaitError(request=None, capture=60), RateLimitedError),
            (errors.SlowModeWaitError(request=None, capture=10), RateLimitedError),
            (errors.PeerFloodError(request=None), RateLimitedError),
            (errors.AuthKeyUnregisteredError(request=None), ConnectFailureError),
            (errors.SessionRevokedError(request=None), ConnectFailureError),
            (errors.AuthKeyDuplicatedError(request=None), ConnectFailureError),
            (errors.UserIsBlockedError(request=None), TelegramRejectedError),
            (errors.ChatWriteForbiddenError(request=None), TelegramRejectedError),
        ],
    )
    def test_classification(self, error: errors.RPCError, expected: type[Exception]) -> None:
        assert type(to_relay_error(error)) is expected

    def test_retry_after_from_flood_wait(self) -> None:
        relay_error = to_relay_error(errors.FloodWaitError(request=None, capture=90))

        assert isinstance(relay_error, RateLimitedError)
        assert relay_error.retry_after == 90

    def test_peer_flood_has_no_retry_after(self) -> None:
        relay_error = to_relay_error(errors.PeerFloodError(request=None))

        assert isinstance(relay_error, RateLimitedError)
        assert relay_error.retry_after is None
        assert "try again later" in str(relay_error)
