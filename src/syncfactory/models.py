"""
Pydantic models for SyncFactory configuration and sync results.

SessionConfig is frozen: one value is built at startup (from config.yaml
or the onboarding wizard) and handed explicitly to everything that needs
it. Nothing in the package keeps mutable global settings.
"""

from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def default_saves_root() -> Path:
    """Where Satisfactory keeps its SaveGames folder on this machine."""
    local_app_data = os.environ.get("LOCALAPPDATA")
    if local_app_data:
        return Path(local_app_data) / "FactoryGame" / "Saved" / "SaveGames"
    return Path("~/.local/share/FactoryGame/Saved/SaveGames").expanduser()


class StoreType(str, Enum):
    """Supported remote store transports."""

    SFTP = "sftp"
    LOCAL = "local"


class SessionConfig(BaseModel):
    """Immutable settings for one sync session."""

    model_config = ConfigDict(frozen=True)

    save_name: str
    store: StoreType = StoreType.SFTP

    # SFTP
    host: str = ""
    port: int = 22
    username: str = ""
    key_path: Optional[Path] = None
    connect_timeout: float = 10.0
    remote_root: str = "/saves"

    # Local directory store (NAS, USB, mounted share)
    local_store_path: Optional[Path] = None

    # Local saves
    saves_root: Path = Field(default_factory=default_saves_root)
    backup_suffix: str = ".backup"
    backup_on_fetch: bool = False

    # Game launch
    app_id: str = "526870"
    process_name: str = "FactoryGame"

    @property
    def target(self) -> str:
        """Human-readable description of where snapshots live."""
        if self.store == StoreType.LOCAL:
            return str(self.local_store_path)
        return f"{self.username}@{self.host}:{self.remote_root}"


class Outcome(str, Enum):
    """Result of a single reconciliation pass."""

    FETCHED = "fetched"
    CURRENT = "current"
    NO_REMOTE = "no-remote"
    PUBLISHED = "published"
    CONFLICT = "conflict"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class Artifact(BaseModel):
    """The local save file under sync."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    modified: datetime


class SnapshotInfo(BaseModel):
    """One immutable snapshot file inside a remote group."""

    model_config = ConfigDict(frozen=True)

    group: str
    name: str
    size: int = 0


class PassResult(BaseModel):
    """What a reconciliation pass did, plus its one-line status message."""

    outcome: Outcome
    message: str
    snapshot: Optional[str] = None
    backup_path: Optional[Path] = None
    remote_time: Optional[datetime] = None
    local_time: Optional[datetime] = None


class SessionReport(BaseModel):
    """Both passes of a session, bracketing the use step."""

    save_name: str
    pre: PassResult
    post: PassResult
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    launched: bool = False


class StatusReport(BaseModel):
    """Read-only comparison of the local save against the remote group."""

    save_name: str
    local_path: Optional[Path] = None
    local_time: Optional[datetime] = None
    latest_snapshot: Optional[str] = None
    remote_time: Optional[datetime] = None
    snapshot_count: int = 0

    @property
    def verdict(self) -> str:
        if self.local_time is None:
            return "no local save"
        if self.remote_time is None:
            return "not on remote"
        if self.remote_time > self.local_time:
            return "remote is newer"
        if self.remote_time < self.local_time:
            return "local is newer"
        return "in sync"
