"""Storage layer exceptions."""

from __future__ import annotations


class StorageError(Exception):
    """Base exception for document storage operations."""


class StorageNotFoundError(StorageError):
    """Raised when a document does not exist yet."""


class StoragePermissionError(StorageError):
    """Raised when a document cannot be read or written due to permissions."""


class StorageValidationError(StorageError):
    """Raised when data cannot be serialized into a document."""


class StorageCorruptedError(StorageError):
    """Raised when a persisted document cannot be decoded."""
