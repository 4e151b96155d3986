"""Tests for the syncfactory CLI commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import SAVE_NAME, put_snapshot, write_save
from syncfactory import clock
from syncfactory.cli import main
from syncfactory.config import save_config
from syncfactory.errors import ConnectivityError, TransferError

T1 = datetime(2024, 3, 9, 18, 0, 0)
T2 = datetime(2024, 3, 9, 19, 0, 0)
T3 = datetime(2024, 3, 9, 20, 0, 0)


@pytest.fixture
def home(tmp_path: Path, config) -> Path:
    """A SyncFactory home configured for a directory store."""
    home = tmp_path / ".syncfactory"
    save_config(config, home)
    return home


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestHelp:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "syncfactory" in result.output

    def test_commands_listed(self, runner):
        result = runner.invoke(main, ["--help"])
        for command in ("run", "setup", "pull", "push", "status", "snapshots", "config"):
            assert command in result.output


class TestNotConfigured:
    def test_pull_without_config(self, runner, tmp_path):
        result = runner.invoke(main, ["pull", "--home", str(tmp_path / "empty")])
        assert result.exit_code == 1
        assert "syncfactory setup" in result.output

    def test_broken_config(self, runner, tmp_path):
        (tmp_path / "config.yaml").write_text("save_name: [oops\n")
        result = runner.invoke(main, ["status", "--home", str(tmp_path)])
        assert result.exit_code == 1
        assert "Config error" in result.output


class TestPullPush:
    def test_pull_fetches_newer(self, runner, home, locator, store_root):
        path = write_save(locator, T1, b"old")
        put_snapshot(store_root, T2, b"new")

        result = runner.invoke(main, ["pull", "--home", str(home)])

        assert result.exit_code == 0, result.output
        assert "FETCHED" in result.output
        assert path.read_bytes() == b"new"

    def test_pull_missing_save(self, runner, home):
        result = runner.invoke(main, ["pull", "--home", str(home)])
        assert result.exit_code == 1
        assert "No local save" in result.output

    def test_push_publishes(self, runner, home, locator, store_root):
        write_save(locator, T2, b"progress")
        result = runner.invoke(main, ["push", "--home", str(home)])
        assert result.exit_code == 0, result.output
        assert "PUBLISHED" in result.output
        assert (store_root / SAVE_NAME / clock.snapshot_name(T2)).exists()

    def test_push_conflict_exits_2(self, runner, home, locator, store_root):
        put_snapshot(store_root, T3)
        path = write_save(locator, T2)
        result = runner.invoke(main, ["push", "--home", str(home)])
        assert result.exit_code == 2
        assert "CONFLICT" in result.output
        assert Path(str(path) + ".backup").exists()

    def test_unreachable_store(self, runner, home, locator, store_root):
        write_save(locator, T1)
        store_root.rmdir()
        result = runner.invoke(main, ["pull", "--home", str(home)])
        assert result.exit_code == 1
        assert "FAILED" in result.output


class TestInspect:
    def test_status(self, runner, home, locator, store_root):
        write_save(locator, T1)
        put_snapshot(store_root, T2)
        result = runner.invoke(main, ["status", "--home", str(home)])
        assert result.exit_code == 0, result.output
        assert "remote is newer" in result.output

    def test_snapshots_of_world(self, runner, home, store_root):
        put_snapshot(store_root, T1)
        put_snapshot(store_root, T2)
        result = runner.invoke(main, ["snapshots", SAVE_NAME, "--home", str(home)])
        assert result.exit_code == 0, result.output
        assert clock.snapshot_name(T1) in result.output
        assert clock.snapshot_name(T2) in result.output

    def test_snapshots_lists_worlds(self, runner, home, store_root):
        put_snapshot(store_root, T1)
        put_snapshot(store_root, T1, name="Beta")
        result = runner.invoke(main, ["snapshots", "--home", str(home)])
        assert result.exit_code == 0, result.output
        assert "Beta" in result.output
        assert SAVE_NAME in result.output

    def test_status_listing_failure(self, runner, home, locator):
        write_save(locator, T1)
        with patch("syncfactory.remote.LocalRemoteStore.list_snapshots", side_effect=TransferError("listing refused")):
            result = runner.invoke(main, ["status", "--home", str(home)])
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "listing refused" in result.output

    def test_snapshots_listing_failure(self, runner, home):
        with patch("syncfactory.remote.LocalRemoteStore.list_groups", side_effect=ConnectivityError("share went away")):
            result = runner.invoke(main, ["snapshots", "--home", str(home)])
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "share went away" in result.output

    def test_config_show(self, runner, home):
        result = runner.invoke(main, ["config", "show", "--home", str(home)])
        assert result.exit_code == 0, result.output
        assert SAVE_NAME in result.output


class TestRun:
    def test_run_no_launch(self, runner, home, locator, store_root):
        write_save(locator, T1)

        with patch("syncfactory.launcher.wait_for_enter", side_effect=lambda: write_save(locator, T2, b"played")):
            result = runner.invoke(main, ["run", "--no-launch", "--home", str(home)])

        assert result.exit_code == 0, result.output
        assert "NO REMOTE" in result.output
        assert "PUBLISHED" in result.output
        assert (store_root / SAVE_NAME / clock.snapshot_name(T2)).read_bytes() == b"played"

    def test_run_launches_game(self, runner, home, locator):
        write_save(locator, T1)
        with patch("syncfactory.launcher.run_game") as run_game:
            result = runner.invoke(main, ["run", "--home", str(home)])
        assert result.exit_code == 0, result.output
        run_game.assert_called_once()
        assert "UNCHANGED" in result.output

    def test_run_missing_save(self, runner, home):
        result = runner.invoke(main, ["run", "--no-launch", "--home", str(home)])
        assert result.exit_code == 1
        assert "No local save" in result.output


class TestSetupFailures:
    def test_setup_transfer_failure(self, runner, tmp_path):
        with patch("syncfactory.onboard.run_setup", side_effect=TransferError("Upload of MyFactory failed")):
            result = runner.invoke(main, ["setup", "--home", str(tmp_path / "home")])
        assert result.exit_code == 1
        assert "Upload of MyFactory failed" in result.output

    def test_run_onboarding_transfer_failure(self, runner, tmp_path):
        with patch("syncfactory.onboard.run_setup", side_effect=TransferError("Download of MyFactory failed")):
            result = runner.invoke(main, ["run", "--no-launch", "--home", str(tmp_path / "home")])
        assert result.exit_code == 1
        assert "Download of MyFactory failed" in result.output
