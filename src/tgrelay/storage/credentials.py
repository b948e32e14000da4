"""Durable credential document: account identity -> Telethon session string."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from tgrelay.storage.base import Storage
from tgrelay.storage.errors import StorageError
from tgrelay.storage.helpers import load_json, save_json
from tgrelay.utils.identity import normalize_identity

logger = logging.getLogger(__name__)


class CredentialStore:
    """JSON-backed mapping from account identity to an opaque credential.

    Writes are read-modify-write over the whole document, so persisting one
    account never drops another account's credential. Inside the process the
    read-modify-write cycle is serialized by a lock; separate processes
    writing the same file remain last-writer-wins.
    """

    def __init__(self, path: Path, *, storage: Storage | None = None) -> None:
        self._path = path
        self._storage = storage
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            data = load_json(self._path, default={}, storage=self._storage)
        except StorageError as e:
            logger.warning(f"Credential document unreadable, treating as empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Credential document {self._path} is not a mapping, ignoring it")
            return {}

        credentials: dict[str, str] = {}
        for identity, credential in data.items():
            if isinstance(identity, str) and isinstance(credential, str) and credential:
                credentials[identity] = credential
            else:
                logger.warning(f"Skipping malformed credential entry for '{identity}'")
        return credentials

    async def load(self) -> dict[str, str]:
        """Return every persisted credential (empty if nothing is stored)."""
        async with self._lock:
            return self._read()

    async def get(self, identity: str) -> str | None:
        identity = normalize_identity(identity)
        credentials = await self.load()
        return credentials.get(identity)

    async def persist(self, identity: str, credential: str) -> None:
        """Merge a credential for identity into the document and write it back.

        Raises:
            InvalidArgumentError: If identity is blank
            StorageError: If the document cannot be written
        """
        identity = normalize_identity(identity)
        async with self._lock:
            credentials = self._read()
            credentials[identity] = credential
            save_json(self._path, credentials, storage=self._storage)
        logger.info(f"Credential persisted for '{identity}'")

    async def remove(self, identity: str) -> bool:
        """Drop the credential for identity. Returns False if none was stored."""
        identity = normalize_identity(identity)
        async with self._lock:
            credentials = self._read()
            if credentials.pop(identity, None) is None:
                return False
            save_json(self._path, credentials, storage=self._storage)
        logger.info(f"Credential removed for '{identity}'")
        return True
