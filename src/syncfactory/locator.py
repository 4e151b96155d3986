"""
Local save discovery and the file operations the engine is allowed to do.

Satisfactory keeps saves one level below SaveGames, in a folder named
after the player's account id:

    SaveGames/
    └── 76561198000000000/
        ├── MyFactory_autosave_0.sav
        ├── MyFactory_autosave_1.sav
        └── MyFactory_autosave_2.sav

The game rotates through the autosave slots, so "the" save for a
logical name is whichever matching file was written most recently.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from . import clock
from .errors import ArtifactNotFoundError, TransferError
from .models import Artifact

logger = logging.getLogger("syncfactory.locator")

AUTOSAVE_MARKER = "_autosave"


class ArtifactLocator(ABC):
    """Finds the local artifact for a logical name and owns its bytes."""

    @abstractmethod
    def resolve_local_path(self, name: str) -> Optional[Path]:
        """Path of the current artifact, or None if there is none."""

    @abstractmethod
    def default_path(self, name: str) -> Path:
        """Where a freshly fetched artifact should be written."""

    @abstractmethod
    def list_logical_names(self) -> list[str]:
        """Every logical name that has at least one local artifact."""

    def modification_instant(self, path: Path) -> datetime:
        """Modification time of ``path`` at token resolution."""
        return clock.from_timestamp(path.stat().st_mtime)

    def artifact(self, name: str) -> Artifact:
        """Resolve the artifact for ``name``.

        Raises:
            ArtifactNotFoundError: If no local file exists.
        """
        path = self.resolve_local_path(name)
        if path is None:
            raise ArtifactNotFoundError(name)
        return Artifact(name=name, path=path, modified=self.modification_instant(path))

    def write_bytes(
        self,
        path: Path,
        stream: BinaryIO,
        modified: Optional[datetime] = None,
    ) -> int:
        """Replace ``path`` with the bytes read from ``stream``.

        The bytes land in a temporary file in the same directory first
        and are moved over the target only once fully written, so a
        failed read leaves the existing file untouched.

        Args:
            path: File to replace (created if absent).
            stream: Binary source.
            modified: If given, stamp the new file with this mtime.

        Returns:
            Number of bytes written.

        Raises:
            TransferError: If the local disk refuses the write.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
        except OSError as exc:
            raise TransferError(f"Cannot write {path}: {exc}") from exc
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                shutil.copyfileobj(stream, fh)
            size = tmp.stat().st_size
            if modified is not None:
                stamp = clock.to_timestamp(modified)
                os.utime(tmp, (stamp, stamp))
            os.replace(tmp, path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise TransferError(f"Cannot write {path}: {exc}") from exc
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d bytes to %s", size, path)
        return size

    def copy(self, path: Path, backup_path: Path) -> Path:
        """Copy ``path`` to ``backup_path``, replacing any previous copy.

        Raises:
            TransferError: If the backup cannot be written.
        """
        try:
            if backup_path.exists():
                backup_path.unlink()
                logger.info("Deleted previous backup %s", backup_path)
            shutil.copy2(path, backup_path)
        except OSError as exc:
            raise TransferError(f"Cannot back up {path} to {backup_path}: {exc}") from exc
        return backup_path


class SaveGameLocator(ArtifactLocator):
    """Locates Satisfactory autosaves under a SaveGames root."""

    def __init__(self, saves_root: Path):
        self.saves_root = Path(saves_root).expanduser()

    def save_dir(self) -> Optional[Path]:
        """The account folder holding the saves (first one, by name)."""
        if not self.saves_root.is_dir():
            return None
        dirs = sorted(p for p in self.saves_root.iterdir() if p.is_dir())
        return dirs[0] if dirs else None

    def candidates(self, name: str) -> list[Path]:
        """All local files that belong to ``name``."""
        save_dir = self.save_dir()
        if save_dir is None:
            return []
        pattern = f"{glob.escape(name)}{AUTOSAVE_MARKER}_*.sav"
        return [p for p in save_dir.glob(pattern) if p.is_file()]

    def resolve_local_path(self, name: str) -> Optional[Path]:
        files = self.candidates(name)
        if not files:
            return None
        return max(files, key=lambda p: (p.stat().st_mtime, p.name))

    def default_path(self, name: str) -> Path:
        save_dir = self.save_dir()
        if save_dir is None:
            raise ArtifactNotFoundError(name, self.saves_root)
        return save_dir / f"{name}{AUTOSAVE_MARKER}_0.sav"

    def list_logical_names(self) -> list[str]:
        save_dir = self.save_dir()
        if save_dir is None:
            return []
        names = {
            p.name[: p.name.index(AUTOSAVE_MARKER)]
            for p in save_dir.glob(f"*{AUTOSAVE_MARKER}_*.sav")
            if p.is_file()
        }
        return sorted(names)

    def artifact(self, name: str) -> Artifact:
        path = self.resolve_local_path(name)
        if path is None:
            raise ArtifactNotFoundError(name, self.save_dir() or self.saves_root)
        return Artifact(name=name, path=path, modified=self.modification_instant(path))
