# ruff: noqa: S101
"""Tests for cursor, load and global CLI options."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from swapbin.cli.commands.cursor import app as cursor_app
from swapbin.cli.commands.load import app as load_app
from swapbin.cli.main import app as main_app
from swapbin.config import get_current_profile
from swapbin.cursor import OffsetCursor, WatermarkCursor
from swapbin.state_store import CursorStateStore


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def database_path(tmp_path: Path, mocker: Any) -> Path:
    """Point the cursor commands at a temporary database."""
    path = tmp_path / "duckdb" / "cli.duckdb"
    mocker.patch("swapbin.cli.commands.cursor.get_database_path", return_value=path)
    return path


class TestCursorCommands:
    """Showing and resetting stored cursors."""

    @pytest.fixture(autouse=True)
    def mock_setup_logging(self, mocker: Any) -> MagicMock:
        return mocker.patch("swapbin.cli.commands.cursor.setup_logging")

    @pytest.mark.integration
    def test_show_lists_stored_cursors(
        self,
        runner: CliRunner,
        database_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        store = CursorStateStore(database_path)
        store.save("changenow", OffsetCursor(offset=700), transaction_count=4)
        store.save("godex", WatermarkCursor(timestamp=1709294400), transaction_count=2)

        with caplog.at_level(logging.INFO):
            result = runner.invoke(cursor_app, ["show"])

        assert result.exit_code == 0
        assert "changenow: offset 700" in caplog.text
        assert "godex: watermark" in caplog.text

    @pytest.mark.integration
    def test_show_without_cursors(
        self,
        runner: CliRunner,
        database_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO):
            result = runner.invoke(cursor_app, ["show"])

        assert result.exit_code == 0
        assert "No stored cursors" in caplog.text

    @pytest.mark.integration
    def test_reset_forgets_cursor(self, runner: CliRunner, database_path: Path) -> None:
        store = CursorStateStore(database_path)
        store.save("godex", WatermarkCursor(timestamp=5), transaction_count=0)

        result = runner.invoke(cursor_app, ["reset", "godex"])

        assert result.exit_code == 0
        assert store.load("godex") is None

    @pytest.mark.unit
    def test_reset_unknown_partner(self, runner: CliRunner, database_path: Path) -> None:
        result = runner.invoke(cursor_app, ["reset", "sideshift"])
        assert result.exit_code == 1


class TestLoadCommands:
    """Loading synced Parquet files from the CLI."""

    @pytest.fixture(autouse=True)
    def mock_setup_logging(self, mocker: Any) -> MagicMock:
        return mocker.patch("swapbin.cli.commands.load.setup_logging")

    @pytest.mark.unit
    def test_missing_source_exits_with_error(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        result = runner.invoke(
            load_app,
            [
                "parquet",
                "--source",
                str(tmp_path / "missing"),
                "--database",
                str(tmp_path / "db.duckdb"),
            ],
        )
        assert result.exit_code == 1

    @pytest.mark.unit
    def test_parquet_passes_options_to_loader(
        self, runner: CliRunner, tmp_path: Path, mocker: Any
    ) -> None:
        loader_cls = mocker.patch("swapbin.cli.commands.load.TransactionLoader")
        loader_cls.return_value.load_all_parquet_files.return_value = {
            "raw_partner_transactions": 3
        }

        result = runner.invoke(
            load_app,
            [
                "parquet",
                "--source",
                str(tmp_path),
                "--database",
                str(tmp_path / "db.duckdb"),
                "--full-refresh",
            ],
        )

        assert result.exit_code == 0
        config = loader_cls.call_args.args[0]
        assert config.source_path == tmp_path
        assert config.incremental is False

    @pytest.mark.unit
    def test_status_without_database(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            load_app, ["status", "--database", str(tmp_path / "none.duckdb")]
        )
        assert result.exit_code == 1


class TestGlobalOptions:
    """Profile selection on the top-level app."""

    @pytest.fixture(autouse=True)
    def mock_setup_logging(self, mocker: Any) -> MagicMock:
        mocker.patch("swapbin.cli.commands.cursor.setup_logging")
        return mocker.patch("swapbin.cli.main.setup_logging")

    @pytest.mark.unit
    def test_profile_option_sets_current_profile(
        self, runner: CliRunner, database_path: Path
    ) -> None:
        result = runner.invoke(main_app, ["--profile", "alice", "cursor", "show"])

        assert result.exit_code == 0
        assert get_current_profile() == "alice"

    @pytest.mark.unit
    def test_invalid_profile_rejected(self, runner: CliRunner) -> None:
        result = runner.invoke(main_app, ["--profile", "bad profile", "cursor", "show"])
        assert result.exit_code != 0

    @pytest.mark.unit
    def test_profile_logging_section_configures_logging(
        self,
        runner: CliRunner,
        database_path: Path,
        tmp_path: Path,
        mock_setup_logging: MagicMock,
    ) -> None:
        (tmp_path / ".env.alice").write_text(
            "SWAPBIN_LOGGING__LEVEL=WARNING\nSWAPBIN_LOGGING__BACKUP_COUNT=2\n"
        )

        result = runner.invoke(main_app, ["--profile", "alice", "cursor", "show"])

        assert result.exit_code == 0
        config = mock_setup_logging.call_args.kwargs["config"]
        assert config.level == "WARNING"
        assert config.backup_count == 2
        assert config.force_reconfigure is True

    @pytest.mark.unit
    def test_invalid_profile_settings_exit_with_error(
        self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("SWAPBIN_SYNC__PAGE_SIZE", "0")

        result = runner.invoke(main_app, ["cursor", "show"])

        assert result.exit_code == 1
