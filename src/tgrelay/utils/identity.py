"""Normalization of account identities and phone numbers."""

from __future__ import annotations

from tgrelay.errors import InvalidArgumentError


def normalize_identity(value: str | None, *, field: str = "username") -> str:
    """Return the trimmed account identity, case preserved.

    Raises:
        InvalidArgumentError: If the value is missing or blank
    """
    normalized = (value or "").strip()
    if not normalized:
        raise InvalidArgumentError(f"Field `{field}` must not be empty")
    return normalized


def normalize_phone(value: str | None) -> str:
    """Return the trimmed phone number.

    Raises:
        InvalidArgumentError: If the phone number is missing or blank
    """
    normalized = (value or "").strip()
    if not normalized:
        raise InvalidArgumentError("Phone number is required")
    return normalized
