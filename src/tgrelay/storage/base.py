"""Base storage interface for document persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class Storage(ABC):
    """Abstract base class for byte-level document storage.

    The credential and trigger stores only read and replace whole
    documents, so the interface has exactly those two operations.
    """

    @abstractmethod
    def save(self, path: Path, content: bytes | str) -> None:
        """Replace the document at path with content.

        Raises:
            StoragePermissionError: If write permission denied
            StorageError: If operation fails
        """

    @abstractmethod
    def load(self, path: Path) -> bytes:
        """Return the raw bytes of the document at path.

        Raises:
            StorageNotFoundError: If the document doesn't exist
            StoragePermissionError: If read permission denied
            StorageError: If operation fails
        """
