"""
Reconciliation engine -- decides which way a save should move.

Two independent passes over one artifact/group pair:

    pre_use   remote newer  ->  fetch into the local path
              otherwise     ->  leave local alone
    post_use  not modified  ->  skip
              local older   ->  refuse, back up local, report the backup
              otherwise     ->  publish a new snapshot named by local mtime

Timelines are only ever ordered, never merged. Snapshots are append-only
and nothing local is thrown away without a copy when it could matter.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import clock
from .errors import TransferError
from .locator import ArtifactLocator
from .models import (
    Artifact,
    Outcome,
    PassResult,
    SessionConfig,
    SnapshotInfo,
    StatusReport,
)
from .remote import RemoteStore

logger = logging.getLogger("syncfactory.engine")

# Saves above this spill from memory to a temp file while downloading
_SPOOL_MAX = 64 * 1024 * 1024


def skip_if_unchanged(start_time: datetime, end_time: datetime) -> Optional[PassResult]:
    """UNCHANGED result unless the modification time strictly increased.

    A time that went backwards is treated the same as an unchanged one.
    """
    start_time = clock.truncate(start_time)
    end_time = clock.truncate(end_time)
    if end_time > start_time:
        return None
    if end_time < start_time:
        logger.debug("Modification time went backwards (%s -> %s)", start_time, end_time)
    return PassResult(
        outcome=Outcome.UNCHANGED,
        message="Save file hasn't changed. Skipping upload.",
        local_time=end_time,
    )


class ReconciliationEngine:
    """Orders a local save against the snapshots of its remote group.

    Args:
        store: Connected remote store.
        locator: Local artifact locator.
        config: Session configuration (backup suffix, fetch backup policy).
    """

    def __init__(
        self,
        store: RemoteStore,
        locator: ArtifactLocator,
        config: SessionConfig,
    ):
        self.store = store
        self.locator = locator
        self.config = config

    def backup_path(self, path: Path) -> Path:
        """Fixed-suffix backup location for an artifact path."""
        return path.with_name(path.name + self.config.backup_suffix)

    def latest_snapshot(
        self,
        group: str,
        snapshots: Optional[list[SnapshotInfo]] = None,
    ) -> Optional[tuple[SnapshotInfo, datetime]]:
        """Newest snapshot in ``group`` and the instant its name encodes.

        Names that are not tokens are skipped. Returns None for an
        absent or empty group. Pass ``snapshots`` to reuse a listing
        already fetched from the store.
        """
        if snapshots is None:
            snapshots = self.store.list_snapshots(group)
        dated = []
        for snap in snapshots:
            instant = clock.instant_of(snap.name)
            if instant is None:
                logger.warning("Ignoring non-snapshot file %s/%s", group, snap.name)
                continue
            dated.append((snap, instant))
        if not dated:
            return None
        return max(dated, key=lambda pair: (pair[1], pair[0].name))

    def fetch(self, snapshot: SnapshotInfo, dest: Path, modified: datetime) -> int:
        """Download ``snapshot`` over ``dest``.

        The whole snapshot is received before ``dest`` is touched, so a
        transfer failure leaves the local file as it was.
        """
        with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX) as buf:
            self.store.read_snapshot(snapshot.group, snapshot.name, buf)
            buf.seek(0)
            return self.locator.write_bytes(dest, buf, modified=modified)

    def pre_use(self, artifact: Artifact) -> PassResult:
        """Fetch the newest snapshot if it is newer than the local save."""
        name = artifact.name
        local_time = clock.truncate(artifact.modified)

        if not self.store.group_exists(name):
            return PassResult(
                outcome=Outcome.NO_REMOTE,
                message=f"No save files found on server for {name}.",
                local_time=local_time,
            )

        latest = self.latest_snapshot(name)
        if latest is None:
            return PassResult(
                outcome=Outcome.NO_REMOTE,
                message=f"No save files found on server for {name}.",
                local_time=local_time,
            )
        snapshot, remote_time = latest

        if remote_time > local_time:
            backup = None
            if self.config.backup_on_fetch:
                backup = self.locator.copy(artifact.path, self.backup_path(artifact.path))
            size = self.fetch(snapshot, artifact.path, remote_time)
            logger.info("Fetched %s/%s (%d bytes) into %s", name, snapshot.name, size, artifact.path)
            return PassResult(
                outcome=Outcome.FETCHED,
                message=(
                    f"Downloaded latest version of {name} "
                    f"(Last updated {clock.describe(remote_time)})"
                ),
                snapshot=snapshot.name,
                backup_path=backup,
                remote_time=remote_time,
                local_time=local_time,
            )

        return PassResult(
            outcome=Outcome.CURRENT,
            message=f"You have the most recent version of {name}.",
            snapshot=snapshot.name,
            remote_time=remote_time,
            local_time=local_time,
        )

    def post_use(
        self,
        artifact: Artifact,
        start_time: datetime,
        end_time: datetime,
    ) -> PassResult:
        """Publish the save if the use step advanced its modification time.

        ``start_time`` and ``end_time`` are the instants captured around
        the use step; they are not re-read here.
        """
        skipped = skip_if_unchanged(start_time, end_time)
        if skipped is not None:
            return skipped
        return self.publish(artifact, clock.truncate(end_time))

    def publish(self, artifact: Artifact, local_time: Optional[datetime] = None) -> PassResult:
        """Append a snapshot of the artifact, or refuse if remote is newer."""
        name = artifact.name
        local_time = clock.truncate(local_time or artifact.modified)
        snapshot_name = clock.snapshot_name(local_time)

        if not self.store.group_exists(name):
            self.store.create_group(name)

        remote_time = None
        snapshots = self.store.list_snapshots(name)
        latest = self.latest_snapshot(name, snapshots)
        if latest is not None:
            latest_snapshot, remote_time = latest
            if local_time < remote_time:
                backup = self.locator.copy(artifact.path, self.backup_path(artifact.path))
                logger.warning(
                    "Refusing to publish %s: local %s is older than %s",
                    name, local_time, latest_snapshot.name,
                )
                return PassResult(
                    outcome=Outcome.CONFLICT,
                    message=(
                        f"Uh oh... You have an older version of {name}. Skipping upload. "
                        f"Your local version has been backed up at {backup}."
                    ),
                    snapshot=latest_snapshot.name,
                    backup_path=backup,
                    remote_time=remote_time,
                    local_time=local_time,
                )

        if snapshot_name in {s.name for s in snapshots}:
            return PassResult(
                outcome=Outcome.CURRENT,
                message=f"{name} is already on the server as {snapshot_name}.",
                snapshot=snapshot_name,
                remote_time=remote_time,
                local_time=local_time,
            )

        try:
            fh = artifact.path.open("rb")
        except OSError as exc:
            raise TransferError(f"Cannot read {artifact.path}: {exc}") from exc
        with fh:
            size = self.store.write_snapshot(name, snapshot_name, fh)
        logger.info("Published %s/%s (%d bytes)", name, snapshot_name, size)
        return PassResult(
            outcome=Outcome.PUBLISHED,
            message=f"Uploaded {name} as {snapshot_name}.",
            snapshot=snapshot_name,
            remote_time=remote_time,
            local_time=local_time,
        )

    def status(self, name: str) -> StatusReport:
        """Compare local and remote without changing either."""
        path = self.locator.resolve_local_path(name)
        local_time = self.locator.modification_instant(path) if path else None
        snapshots = self.store.list_snapshots(name)
        latest = self.latest_snapshot(name, snapshots)
        return StatusReport(
            save_name=name,
            local_path=path,
            local_time=local_time,
            latest_snapshot=latest[0].name if latest else None,
            remote_time=latest[1] if latest else None,
            snapshot_count=len(snapshots),
        )
