"""Shared test fixtures for syncfactory."""

from __future__ import annotations

import io
import os
from datetime import datetime
from pathlib import Path

import pytest

from syncfactory import clock
from syncfactory.engine import ReconciliationEngine
from syncfactory.locator import SaveGameLocator
from syncfactory.models import SessionConfig, StoreType
from syncfactory.remote import LocalRemoteStore

SAVE_NAME = "MyFactory"


def set_mtime(path: Path, instant: datetime) -> None:
    """Stamp a file with a naive UTC instant."""
    stamp = clock.to_timestamp(instant)
    os.utime(path, (stamp, stamp))


def write_save(locator: SaveGameLocator, instant: datetime, data: bytes = b"local",
               slot: int = 0, name: str = SAVE_NAME) -> Path:
    """Create an autosave slot with the given content and mtime."""
    path = locator.save_dir() / f"{name}_autosave_{slot}.sav"
    path.write_bytes(data)
    set_mtime(path, instant)
    return path


def put_snapshot(store_root: Path, instant: datetime, data: bytes = b"remote",
                 name: str = SAVE_NAME) -> Path:
    """Drop a snapshot straight into a local store directory."""
    group = store_root / name
    group.mkdir(parents=True, exist_ok=True)
    path = group / clock.snapshot_name(instant)
    path.write_bytes(data)
    return path


class FailingStream(io.RawIOBase):
    """Yields ``head`` and then fails, like a link dropping mid-upload."""

    def __init__(self, head: bytes):
        super().__init__()
        self.head = head
        self.sent = False

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self.sent:
            raise OSError("connection reset by peer")
        self.sent = True
        b[: len(self.head)] = self.head
        return len(self.head)


@pytest.fixture
def saves_root(tmp_path: Path) -> Path:
    """A SaveGames folder with one account directory."""
    root = tmp_path / "SaveGames"
    (root / "76561198000000000").mkdir(parents=True)
    return root


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    root = tmp_path / "store"
    root.mkdir()
    return root


@pytest.fixture
def config(saves_root: Path, store_root: Path) -> SessionConfig:
    return SessionConfig(
        save_name=SAVE_NAME,
        store=StoreType.LOCAL,
        local_store_path=store_root,
        saves_root=saves_root,
    )


@pytest.fixture
def locator(saves_root: Path) -> SaveGameLocator:
    return SaveGameLocator(saves_root)


@pytest.fixture
def store(store_root: Path) -> LocalRemoteStore:
    return LocalRemoteStore(store_root).connect()


@pytest.fixture
def engine(store, locator, config) -> ReconciliationEngine:
    return ReconciliationEngine(store, locator, config)
