"""Tests for CLI commands."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from clipscribe.cli import _mask, _setup_logging, app
from clipscribe.errors import InvalidHotkeySpec
from clipscribe.models import ImageCapture, Record, TextCapture
from clipscribe.store.database import Database
from clipscribe.store.records import PersistenceStore

runner = CliRunner()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cli.db"


def _seed(db_path: Path) -> PersistenceStore:
    database = Database(db_path)
    database.ensure_schema()
    return PersistenceStore(database)


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("clipscribe.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("clipscribe.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestMask:
    def test_masks_api_key(self) -> None:
        assert _mask("llm_api_key", "sk-abcdefgh1234") == "sk-...1234"

    def test_masks_short_api_key(self) -> None:
        assert _mask("llm_api_key", "short") == "****"

    def test_other_keys_untouched(self) -> None:
        assert _mask("global_hotkey", "Alt+F9") == "Alt+F9"


class TestListCommand:
    """Tests for the list command."""

    def test_empty(self, db_path: Path) -> None:
        result = runner.invoke(app, ["list", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "No clips stored yet" in result.stdout

    def test_shows_records(self, db_path: Path) -> None:
        store = _seed(db_path)
        store.create(TextCapture(plain="hello"), "notes", None, ["todo"])
        store.create(ImageCapture(data="abc", width=3, height=2), "image", "pic", ["screenshot"])

        result = runner.invoke(app, ["list", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "hello" in result.stdout
        assert "notes" in result.stdout
        assert "<image 3x2>" in result.stdout


class TestDeleteCommand:
    """Tests for the delete command."""

    def test_delete_existing(self, db_path: Path) -> None:
        record = _seed(db_path).create(TextCapture(plain="bye"), "notes", None, [])

        result = runner.invoke(app, ["delete", record.id, "--db", str(db_path)])

        assert result.exit_code == 0
        assert f"Deleted clip {record.id}" in result.stdout
        assert _seed(db_path).list_records() == []

    def test_delete_missing(self, db_path: Path) -> None:
        result = runner.invoke(app, ["delete", "42", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "Item not found: 42" in result.stdout


class TestSettingsCommands:
    """Tests for the settings sub-commands."""

    def test_set_then_get_hotkey(self, db_path: Path) -> None:
        result = runner.invoke(app, ["settings", "set", "global_hotkey", "Alt+F9", "--db", str(db_path)])
        assert result.exit_code == 0

        result = runner.invoke(app, ["settings", "get", "global_hotkey", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Alt+F9" in result.stdout

    def test_set_invalid_hotkey_rejected(self, db_path: Path) -> None:
        result = runner.invoke(
            app, ["settings", "set", "global_hotkey", "Control+Shift", "--db", str(db_path)]
        )

        assert result.exit_code != 0
        get = runner.invoke(app, ["settings", "get", "global_hotkey", "--db", str(db_path)])
        assert "CommandOrControl+Shift+S" in get.stdout

    def test_get_missing_key(self, db_path: Path) -> None:
        result = runner.invoke(app, ["settings", "get", "llm_model", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "not set" in result.stdout

    def test_api_key_is_masked(self, db_path: Path) -> None:
        runner.invoke(app, ["settings", "set", "llm_api_key", "sk-abcdefgh1234", "--db", str(db_path)])

        result = runner.invoke(app, ["settings", "list", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "sk-abcdefgh1234" not in result.stdout
        assert "global_hotkey" in result.stdout


class TestHotkeyCommands:
    """Tests for the hotkey sub-commands."""

    def test_test_valid(self) -> None:
        result = runner.invoke(app, ["hotkey", "test", "Control+Shift+S"])

        assert result.exit_code == 0
        assert "OK: key KeyS, modifiers control, shift" in result.stdout

    def test_test_invalid(self) -> None:
        result = runner.invoke(app, ["hotkey", "test", "Control+Shift"])

        assert result.exit_code == 1
        assert "Invalid hotkey" in result.stdout

    def test_set_and_show(self, db_path: Path) -> None:
        result = runner.invoke(app, ["hotkey", "set", "Alt+F9", "--db", str(db_path)])
        assert result.exit_code == 0

        result = runner.invoke(app, ["hotkey", "show", "--db", str(db_path)])

        assert "Alt+F9" in result.stdout

    def test_set_invalid(self, db_path: Path) -> None:
        result = runner.invoke(app, ["hotkey", "set", "Alt+Nope", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "Invalid hotkey format" in result.stdout


class TestCaptureCommand:
    """Tests for the one-shot capture command."""

    @patch("clipscribe.cli.CaptureAgent")
    def test_nothing_captured(self, mock_agent_class: MagicMock, db_path: Path) -> None:
        mock_agent_class.return_value.orchestrator.run_cycle.return_value = MagicMock(record=None)

        result = runner.invoke(app, ["capture", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "Nothing captured" in result.stdout
        mock_agent_class.return_value.orchestrator.shutdown.assert_called_once()

    @patch("clipscribe.cli.CaptureAgent")
    def test_saved(self, mock_agent_class: MagicMock, db_path: Path) -> None:
        record = Record(
            id="7",
            capture=TextCapture(plain="https://example.com"),
            category="url",
            summary="- Example domain",
            tags=("example",),
            created_at=datetime.now(timezone.utc),
        )
        mock_agent_class.return_value.orchestrator.run_cycle.return_value = MagicMock(record=record)

        result = runner.invoke(app, ["capture", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Saved clip 7 as url (example)" in result.stdout
        assert "- Example domain" in result.stdout


class TestRunCommand:
    """Tests for the run command."""

    @patch("clipscribe.cli.setup_logging")
    @patch("clipscribe.cli.CaptureAgent")
    def test_invalid_hotkey_exits(
        self, mock_agent_class: MagicMock, mock_logging: MagicMock, db_path: Path
    ) -> None:
        mock_logging.return_value = db_path.parent / "clipscribe.log"
        mock_agent_class.return_value.settings.global_hotkey.return_value = "Control+Shift"
        mock_agent_class.return_value.run_forever.side_effect = InvalidHotkeySpec("No key")

        result = runner.invoke(app, ["run", "--db", str(db_path)])

        assert result.exit_code == 1
        assert "No key" in result.stdout

    @patch("clipscribe.cli.setup_logging")
    @patch("clipscribe.cli.CaptureAgent")
    def test_runs_agent(
        self, mock_agent_class: MagicMock, mock_logging: MagicMock, db_path: Path
    ) -> None:
        mock_logging.return_value = db_path.parent / "clipscribe.log"
        mock_agent_class.return_value.settings.global_hotkey.return_value = "Alt+F9"

        result = runner.invoke(app, ["run", "--db", str(db_path), "--workers", "2"])

        assert result.exit_code == 0
        assert "Listening on" in result.stdout
        config = mock_agent_class.call_args[0][0]
        assert config.max_workers == 2
        mock_agent_class.return_value.run_forever.assert_called_once()
