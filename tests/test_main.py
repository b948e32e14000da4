"""Tests for the command line entry point."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI

from tgrelay import __version__
from tgrelay.config import reset_settings
from tgrelay.main import main


@pytest.fixture(autouse=True)
def isolate(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Run with a clean environment and restore logging afterwards."""
    monkeypatch.chdir(tmp_path)
    for name in ("TGRELAY_HOST", "TGRELAY_PORT", "TGRELAY_DEBUG", "TGRELAY_DATA_DIR"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TGRELAY_API_ID", "12345")
    monkeypatch.setenv("TGRELAY_API_HASH", "0123456789abcdef0123456789abcdef")
    reset_settings()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers.copy()
    original_level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.handlers = original_handlers
    root_logger.setLevel(original_level)
    reset_settings()


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with patch("sys.argv", ["tgrelay", "--version"]), pytest.raises(SystemExit) as exc_info:
        main()

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_validate_creates_data_dir(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    data_dir = tmp_path / "data"

    with (
        patch("sys.argv", ["tgrelay", "--validate", "--data-dir", str(data_dir)]),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()

    assert exc_info.value.code == 0
    assert data_dir.is_dir()
    assert "Configuration is valid" in capsys.readouterr().out


def test_validate_reports_unusable_data_dir(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x")

    with (
        patch("sys.argv", ["tgrelay", "--validate", "--data-dir", str(blocker / "data")]),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()

    assert exc_info.value.code == 1
    assert "Configuration validation failed" in capsys.readouterr().out


def test_runs_uvicorn_with_cli_overrides(tmp_path: Path) -> None:
    argv = ["tgrelay", "--host", "0.0.0.0", "--port", "9002", "--data-dir", str(tmp_path)]

    with patch("sys.argv", argv), patch("uvicorn.run") as run:
        main()

    run.assert_called_once()
    app = run.call_args.args[0]
    assert isinstance(app, FastAPI)
    assert app.state.settings.data_dir == tmp_path
    assert run.call_args.kwargs["host"] == "0.0.0.0"
    assert run.call_args.kwargs["port"] == 9002


def test_keyboard_interrupt_exits_cleanly(tmp_path: Path) -> None:
    run = MagicMock(side_effect=KeyboardInterrupt)

    with (
        patch("sys.argv", ["tgrelay", "--data-dir", str(tmp_path)]),
        patch("uvicorn.run", run),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()

    assert exc_info.value.code == 0
