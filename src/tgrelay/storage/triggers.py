"""Durable trigger document and the in-memory mirror read by the auto-reply engine."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from tgrelay.errors import InvalidArgumentError
from tgrelay.storage.base import Storage
from tgrelay.storage.errors import StorageError
from tgrelay.storage.helpers import load_json, save_json
from tgrelay.utils.identity import normalize_identity

logger = logging.getLogger(__name__)


class TriggerRule(BaseModel):
    """A (match text, reply text) pair for one account."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    match_text: str
    reply_text: str


TriggerMapping = dict[str, list[TriggerRule]]


class TriggerStore:
    """JSON-backed mapping from account identity to an ordered list of rules.

    The store also owns the in-memory mirror (identity -> {match: reply})
    that the auto-reply engine consults for every inbound message. The
    mirror is updated together with the document so a rule is live as soon
    as it is persisted.

    Example:
        ```python
        store = TriggerStore(settings.triggers_path)
        await store.persist_trigger("alice", "hi", "hello")
        store.get_user_trigger_map("alice")  # {"hi": "hello"}
        ```
    """

    def __init__(self, path: Path, *, storage: Storage | None = None) -> None:
        self._path = path
        self._storage = storage
        self._lock = asyncio.Lock()
        self._mirror: dict[str, dict[str, str]] = {}

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> TriggerMapping:
        try:
            data = load_json(self._path, default={}, storage=self._storage)
        except StorageError as e:
            logger.warning(f"Trigger document unreadable, treating as empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Trigger document {self._path} is not a mapping, ignoring it")
            return {}

        mapping: TriggerMapping = {}
        for identity, raw_rules in data.items():
            if not isinstance(raw_rules, list):
                logger.warning(f"Skipping malformed trigger list for '{identity}'")
                continue
            rules = []
            for raw in raw_rules:
                try:
                    rules.append(TriggerRule.model_validate(raw))
                except ValidationError:
                    logger.warning(f"Skipping malformed trigger rule for '{identity}': {raw!r}")
            mapping[identity] = rules
        return mapping

    def _write(self, mapping: TriggerMapping) -> None:
        document: dict[str, list[dict[str, Any]]] = {
            identity: [rule.model_dump() for rule in rules] for identity, rules in mapping.items()
        }
        save_json(self._path, document, storage=self._storage)

    async def load(self) -> TriggerMapping:
        """Return every persisted rule set (empty if nothing is stored)."""
        async with self._lock:
            return self._read()

    async def save(self, mapping: TriggerMapping) -> None:
        """Replace the whole trigger document."""
        async with self._lock:
            self._write(mapping)

    def get_user_trigger_map(self, identity: str) -> dict[str, str]:
        """Return the live {match_text: reply_text} mirror for identity.

        Created empty on first access.
        """
        return self._mirror.setdefault(identity, {})

    async def persist_trigger(self, identity: str, match_text: str, reply_text: str) -> TriggerRule:
        """Add or replace the rule for match_text under identity.

        An existing rule with the same match text keeps its position and gets
        the new reply; otherwise the rule is appended.

        Raises:
            InvalidArgumentError: If identity, match text or reply text is blank
            StorageError: If the document cannot be written
        """
        identity = normalize_identity(identity)
        # Inbound text is trimmed before matching, so keys are stored trimmed
        match_text = match_text.strip()
        if not match_text:
            raise InvalidArgumentError("Field `trigger` must not be empty")
        if not reply_text.strip():
            raise InvalidArgumentError("Field `reply` must not be empty")

        rule = TriggerRule(match_text=match_text, reply_text=reply_text)
        async with self._lock:
            mapping = self._read()
            rules = mapping.setdefault(identity, [])
            for index, existing in enumerate(rules):
                if existing.match_text == match_text:
                    rules[index] = rule
                    break
            else:
                rules.append(rule)
            self._write(mapping)
            self.get_user_trigger_map(identity)[match_text] = reply_text

        logger.info(f"Trigger '{match_text}' stored for '{identity}' ({len(rules)} total)")
        return rule

    async def clear(self, identity: str) -> bool:
        """Remove every rule for identity from the document and the mirror.

        Returns:
            True if the identity had persisted rules
        """
        identity = normalize_identity(identity)
        async with self._lock:
            mapping = self._read()
            existed = mapping.pop(identity, None) is not None
            if existed:
                self._write(mapping)
            self._mirror.pop(identity, None)

        logger.info(f"Triggers cleared for '{identity}' (had rules: {existed})")
        return existed

    async def list_rules(self, identity: str) -> list[TriggerRule]:
        identity = normalize_identity(identity)
        mapping = await self.load()
        return list(mapping.get(identity, []))

    async def hydrate(self) -> list[str]:
        """Populate the mirror from the document.

        Returns:
            Identities that have at least one persisted rule
        """
        mapping = await self.load()
        hydrated = []
        for identity, rules in mapping.items():
            if not rules:
                continue
            self._mirror[identity] = {rule.match_text: rule.reply_text for rule in rules}
            hydrated.append(identity)
        logger.info(f"Hydrated triggers for {len(hydrated)} account(s)")
        return hydrated
