"""Tests for the first-run setup wizard (prompts mocked)."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import SAVE_NAME, put_snapshot, write_save
from syncfactory import clock
from syncfactory.config import load_config
from syncfactory.errors import ConfigError
from syncfactory.models import StoreType
from syncfactory.onboard import run_setup

T1 = datetime(2024, 3, 9, 18, 0, 0)
T2 = datetime(2024, 3, 9, 19, 0, 0)


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / ".syncfactory"


def _answers(choice: str, index: int = 1, confirm: bool = True):
    return (
        patch("syncfactory.onboard.Prompt.ask", return_value=choice),
        patch("syncfactory.onboard.IntPrompt.ask", return_value=index),
        patch("syncfactory.onboard.Confirm.ask", return_value=confirm),
    )


def _run(home, saves_root, store_root, choice, index=1, confirm=True):
    p1, p2, p3 = _answers(choice, index, confirm)
    with p1, p2, p3:
        return run_setup(home=home, saves_root=saves_root, store_path=store_root)


class TestUpload:
    def test_upload_local_world(self, home, saves_root, store_root, locator):
        write_save(locator, T1, b"mine")

        config = _run(home, saves_root, store_root, "upload")

        assert config.save_name == SAVE_NAME
        assert config.store == StoreType.LOCAL
        assert (store_root / SAVE_NAME / clock.snapshot_name(T1)).read_bytes() == b"mine"
        assert load_config(home) == config

    def test_upload_without_local_saves(self, home, saves_root, store_root):
        with pytest.raises(ConfigError, match="No local save"):
            _run(home, saves_root, store_root, "upload")


class TestDownload:
    def test_download_remote_world(self, home, saves_root, store_root, locator):
        put_snapshot(store_root, T1, b"old")
        put_snapshot(store_root, T2, b"latest")

        config = _run(home, saves_root, store_root, "download")

        assert config.save_name == SAVE_NAME
        dest = locator.default_path(SAVE_NAME)
        assert dest.read_bytes() == b"latest"
        assert locator.modification_instant(dest) == T2

    def test_existing_local_backed_up_on_overwrite(self, home, saves_root, store_root, locator):
        put_snapshot(store_root, T2, b"remote")
        existing = write_save(locator, T1, b"local", slot=2)

        _run(home, saves_root, store_root, "download", confirm=True)

        assert not existing.exists()
        assert Path(str(existing) + ".backup").read_bytes() == b"local"
        assert locator.resolve_local_path(SAVE_NAME).read_bytes() == b"remote"

    def test_declined_overwrite_aborts(self, home, saves_root, store_root, locator):
        put_snapshot(store_root, T2, b"remote")
        existing = write_save(locator, T1, b"local")

        assert _run(home, saves_root, store_root, "download", confirm=False) is None
        assert existing.read_bytes() == b"local"
        assert load_config(home) is None

    def test_empty_store(self, home, saves_root, store_root):
        with pytest.raises(ConfigError, match="No worlds"):
            _run(home, saves_root, store_root, "download")


def test_requires_saves_folder(home, tmp_path, store_root):
    with pytest.raises(ConfigError, match="Satisfactory is installed"):
        run_setup(home=home, saves_root=tmp_path / "missing", store_path=store_root)
