"""Tests for the storage layer: atomic document writes and JSON encoding."""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from tgrelay.storage import (
    FileStorage,
    StorageCorruptedError,
    StorageError,
    StorageNotFoundError,
    StorageValidationError,
    load_json,
    save_json,
)
from tgrelay.storage.file import _unfinished_writes, cleanup_orphaned_temp_files


class TestFileStorage:
    """Tests for FileStorage."""

    def test_save_and_load(self, isolated_tmp_dir: Path) -> None:
        storage = FileStorage()
        path = isolated_tmp_dir / "credentials.json"

        storage.save(path, '{"alice": "x"}')

        assert storage.load(path) == b'{"alice": "x"}'

    def test_save_creates_data_directory(self, isolated_tmp_dir: Path) -> None:
        storage = FileStorage()
        path = isolated_tmp_dir / "nested" / "deeper" / "triggers.json"

        storage.save(path, b"{}")

        assert path.read_bytes() == b"{}"

    def test_save_replaces_and_leaves_no_temp_files(self, isolated_tmp_dir: Path) -> None:
        storage = FileStorage()
        path = isolated_tmp_dir / "credentials.json"

        storage.save(path, "first")
        storage.save(path, "second")

        assert path.read_text() == "second"
        assert list(isolated_tmp_dir.glob(".*.tmp")) == []
        assert path not in _unfinished_writes.values()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_documents_are_owner_only_by_default(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "credentials.json"

        FileStorage().save(path, "{}")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_custom_file_mode(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "triggers.json"

        FileStorage(file_mode=0o640).save(path, "{}")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o640

    def test_failed_rename_keeps_previous_document(self, isolated_tmp_dir: Path) -> None:
        storage = FileStorage()
        path = isolated_tmp_dir / "credentials.json"
        storage.save(path, "old")

        with (
            patch.object(Path, "replace", side_effect=OSError("disk full")),
            pytest.raises(StorageError, match="credentials.json"),
        ):
            storage.save(path, "new")

        assert path.read_text() == "old"
        assert list(isolated_tmp_dir.glob(".credentials.json.*.tmp")) == []
        assert _unfinished_writes == {}

    def test_load_missing_document_raises(self, isolated_tmp_dir: Path) -> None:
        with pytest.raises(StorageNotFoundError):
            FileStorage().load(isolated_tmp_dir / "missing.json")


class TestCleanupOrphanedTempFiles:
    """Tests for startup cleanup of interrupted writes."""

    def test_removes_leftovers_of_known_documents_only(self, isolated_tmp_dir: Path) -> None:
        credentials = isolated_tmp_dir / "credentials.json"
        triggers = isolated_tmp_dir / "triggers.json"
        (isolated_tmp_dir / ".credentials.json.abc.tmp").write_text("partial")
        (isolated_tmp_dir / ".triggers.json.def.tmp").write_text("partial")
        unrelated = isolated_tmp_dir / ".editor-swap.tmp"
        unrelated.write_text("keep")
        credentials.write_text("{}")

        removed = cleanup_orphaned_temp_files((credentials, triggers))

        assert removed == 2
        assert credentials.exists()
        assert unrelated.exists()
        assert list(isolated_tmp_dir.glob(".*.json.*.tmp")) == []

    def test_missing_directory_returns_zero(self, isolated_tmp_dir: Path) -> None:
        assert cleanup_orphaned_temp_files([isolated_tmp_dir / "nope" / "credentials.json"]) == 0


class TestJsonHelpers:
    """Tests for save_json / load_json."""

    def test_roundtrip_preserves_unicode(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "triggers.json"

        save_json(path, {"алиса": [{"match_text": "привет", "reply_text": "👋"}]})

        assert load_json(path) == {"алиса": [{"match_text": "привет", "reply_text": "👋"}]}
        assert "привет" in path.read_text(encoding="utf-8")

    def test_keys_are_written_in_stable_order(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "credentials.json"

        save_json(path, {"bob": "b", "alice": "a"})

        text = path.read_text(encoding="utf-8")
        assert text.index('"alice"') < text.index('"bob"')
        assert text.endswith("\n")

    def test_missing_document_uses_default(self, isolated_tmp_dir: Path) -> None:
        assert load_json(isolated_tmp_dir / "credentials.json", default={}) == {}

    def test_missing_document_without_default_raises(self, isolated_tmp_dir: Path) -> None:
        with pytest.raises(StorageNotFoundError):
            load_json(isolated_tmp_dir / "credentials.json")

    def test_save_unserializable_raises_validation_error(self, isolated_tmp_dir: Path) -> None:
        with pytest.raises(StorageValidationError):
            save_json(isolated_tmp_dir / "credentials.json", {"bad": object()})

    def test_load_invalid_json_raises_corrupted(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "credentials.json"
        path.write_text("{not json")

        with pytest.raises(StorageCorruptedError, match="credentials.json"):
            load_json(path, default={})

    def test_load_invalid_utf8_raises_corrupted(self, isolated_tmp_dir: Path) -> None:
        path = isolated_tmp_dir / "triggers.json"
        path.write_bytes(b"\xff\xfe\x00")

        with pytest.raises(StorageCorruptedError):
            load_json(path)

    def test_uses_injected_storage(self, isolated_tmp_dir: Path) -> None:
        class MemoryStorage(FileStorage):
            def __init__(self) -> None:
                super().__init__()
                self.saved: dict[Path, bytes] = {}

            def save(self, path: Path, content: bytes | str) -> None:
                self.saved[path] = content.encode() if isinstance(content, str) else content

            def load(self, path: Path) -> bytes:
                if path not in self.saved:
                    raise StorageNotFoundError(str(path))
                return self.saved[path]

        storage = MemoryStorage()
        path = isolated_tmp_dir / "credentials.json"

        save_json(path, {"a": 1}, storage=storage)

        assert not path.exists()
        assert load_json(path, storage=storage) == {"a": 1}
        assert load_json(isolated_tmp_dir / "other.json", default=None, storage=storage) is None
