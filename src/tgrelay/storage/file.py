"""Atomic document files for the credential and trigger stores.

Each document is replaced by writing a sibling temp file named
``.<document>.<random>.tmp`` and renaming it over the document. A crash
between the two steps leaves only the temp file behind; the document
itself is never half written.
"""

from __future__ import annotations

import atexit
import contextlib
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from tgrelay.storage.base import Storage
from tgrelay.storage.errors import (
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"

# Owner-only: the credential document holds live session strings
DEFAULT_FILE_MODE = 0o600

# Temp file -> document it is about to replace, for writes not yet renamed
_unfinished_writes: dict[Path, Path] = {}


def temp_prefix(document: Path) -> str:
    """Prefix shared by every temp file written for document."""
    return f".{document.name}."


def _discard_unfinished_writes() -> None:
    """Remove temp files of writes interrupted by interpreter exit."""
    for temp_path, document in list(_unfinished_writes.items()):
        try:
            temp_path.unlink(missing_ok=True)
            logger.debug(f"Discarded unfinished write of {document.name}: {temp_path}")
        except OSError as e:
            logger.warning(f"Failed to discard unfinished write {temp_path}: {e}")


atexit.register(_discard_unfinished_writes)


def cleanup_orphaned_temp_files(documents: Iterable[Path]) -> int:
    """Remove temp files a previous process left next to documents.

    Called at startup, before the stores read their documents. Only temp
    files carrying a document's own prefix are touched, so other files in
    the data directory are left alone.

    Args:
        documents: Document paths whose leftover temp files should go

    Returns:
        Number of files removed
    """
    removed = 0
    for document in documents:
        directory = document.parent
        if not directory.is_dir():
            continue
        try:
            leftovers = [
                path
                for path in directory.glob(f"{temp_prefix(document)}*{TEMP_SUFFIX}")
                if path.is_file()
            ]
        except OSError as e:
            logger.warning(f"Cannot scan {directory} for leftovers of {document.name}: {e}")
            continue

        for leftover in leftovers:
            try:
                leftover.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove leftover {leftover}: {e}")
                continue
            logger.info(f"Removed interrupted write of {document.name}: {leftover.name}")
            removed += 1
    return removed


class FileStorage(Storage):
    """Whole-document file storage with atomic replacement.

    Readers never observe a partially written credential or trigger
    document. New documents are created with ``file_mode`` (owner-only by
    default); pass ``None`` to keep the process umask.

    Example:
        ```python
        storage = FileStorage()
        storage.save(settings.credentials_path, '{"alice": "1Aa..."}')
        data = storage.load(settings.credentials_path)
        ```
    """

    def __init__(self, *, file_mode: int | None = DEFAULT_FILE_MODE) -> None:
        self._file_mode = file_mode

    def save(self, path: Path, content: bytes | str) -> None:
        """Replace the document at path.

        Raises:
            StoragePermissionError: If the directory or document is not writable
            StorageError: If the write or rename fails
        """
        payload = content.encode("utf-8") if isinstance(content, str) else content
        self._ensure_directory(path.parent)

        temp_path: Path | None = None
        try:
            # Temp file sits beside the document so the rename is atomic
            fd, name = tempfile.mkstemp(
                dir=path.parent, prefix=temp_prefix(path), suffix=TEMP_SUFFIX
            )
            temp_path = Path(name)
            _unfinished_writes[temp_path] = path
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            if self._file_mode is not None:
                os.chmod(temp_path, self._file_mode)
            temp_path.replace(path)
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot write {path.name}: permission denied") from e
        except OSError as e:
            raise StorageError(f"Failed to write {path.name}: {e}") from e
        finally:
            if temp_path is not None:
                _unfinished_writes.pop(temp_path, None)
                with contextlib.suppress(OSError):
                    temp_path.unlink(missing_ok=True)

        logger.debug(f"Wrote {len(payload)} bytes to {path}")

    def load(self, path: Path) -> bytes:
        """Read the whole document at path.

        Raises:
            StorageNotFoundError: If the document was never written
            StoragePermissionError: If the document is not readable
            StorageError: If the read fails
        """
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"No document at {path}") from e
        except PermissionError as e:
            raise StoragePermissionError(f"Cannot read {path.name}: permission denied") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}") from e

    @staticmethod
    def _ensure_directory(directory: Path) -> None:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise StoragePermissionError(
                f"Cannot create data directory {directory}: permission denied"
            ) from e
        except OSError as e:
            raise StorageError(f"Failed to create data directory {directory}: {e}") from e
