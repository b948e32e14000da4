"""JSON encoding for the credential and trigger documents.

Both documents are small JSON objects keyed by account identity. They are
written pretty-printed with stable key order so that a hand edit or a
``diff`` between two versions stays readable.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from tgrelay.storage.base import Storage
from tgrelay.storage.errors import (
    StorageCorruptedError,
    StorageNotFoundError,
    StorageValidationError,
)
from tgrelay.storage.file import FileStorage

_default_storage = FileStorage()

# Marker for "raise when the document does not exist"
_REQUIRED: Any = object()


def encode_document(data: Any) -> str:
    """Serialize a document body.

    Raises:
        StorageValidationError: If data holds values JSON cannot represent
    """
    try:
        return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise StorageValidationError(f"Document is not JSON serializable: {e}") from e


def decode_document(path: Path, content: bytes) -> Any:
    """Parse raw document bytes read from path.

    Raises:
        StorageCorruptedError: If content is not UTF-8 JSON
    """
    try:
        return json.loads(content.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise StorageCorruptedError(f"{path.name} is not UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise StorageCorruptedError(f"{path.name} is not valid JSON: {e}") from e


def save_json(path: Path, data: Any, *, storage: Storage | None = None) -> None:
    """Replace the document at path with data.

    Args:
        path: Document path (credentials or triggers file)
        data: JSON-compatible document body
        storage: Storage instance (default: FileStorage)

    Raises:
        StorageValidationError: If data cannot be serialized
        StoragePermissionError: If write permission denied
        StorageError: If operation fails
    """
    (storage or _default_storage).save(path, encode_document(data))


def load_json(path: Path, *, default: Any = _REQUIRED, storage: Storage | None = None) -> Any:
    """Load the document at path.

    Args:
        path: Document path (credentials or triggers file)
        default: Returned when the document was never written. Without it
            a missing document raises StorageNotFoundError.
        storage: Storage instance (default: FileStorage)

    Raises:
        StorageNotFoundError: If the document is missing and no default is given
        StorageCorruptedError: If the document is not UTF-8 JSON
        StoragePermissionError: If read permission denied
        StorageError: If operation fails
    """
    try:
        content = (storage or _default_storage).load(path)
    except StorageNotFoundError:
        if default is _REQUIRED:
            raise
        return default
    return decode_document(path, content)
