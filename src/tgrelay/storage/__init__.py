"""Storage layer for the durable credential and trigger documents.

Example:
    ```python
    from tgrelay.storage import CredentialStore, TriggerStore

    credentials = CredentialStore(settings.credentials_path)
    await credentials.persist("alice", session_string)
    ```
"""

from __future__ import annotations

from tgrelay.storage.base import Storage
from tgrelay.storage.credentials import CredentialStore
from tgrelay.storage.errors import (
    StorageCorruptedError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageValidationError,
)
from tgrelay.storage.file import FileStorage, cleanup_orphaned_temp_files
from tgrelay.storage.helpers import load_json, save_json
from tgrelay.storage.triggers import TriggerMapping, TriggerRule, TriggerStore

__all__ = [
    # Base classes
    "Storage",
    # Implementations
    "FileStorage",
    "CredentialStore",
    "TriggerStore",
    "TriggerRule",
    "TriggerMapping",
    # Helpers
    "save_json",
    "load_json",
    "cleanup_orphaned_temp_files",
    # Exceptions
    "StorageError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageValidationError",
    "StorageCorruptedError",
]
