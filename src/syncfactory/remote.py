"""
Remote stores -- where snapshots live.

Every store exposes the same small capability set: check for a group,
list its snapshots, create it, and stream a snapshot in or out. The
engine never learns which transport it is talking to.

SFTP: paramiko over SSH, keyed by the private key pasted during setup.
Local: a plain directory. For NAS shares, USB drives, and tests.

Layout on either side:

    <root>/<group>/<yyMMdd-HHmmss>.sav
"""

from __future__ import annotations

import logging
import posixpath
import shutil
import socket
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Optional

import paramiko

from .errors import ConfigError, ConnectivityError, TransferError
from .models import SessionConfig, SnapshotInfo, StoreType

logger = logging.getLogger("syncfactory.remote")

# paramiko surfaces dropped links as any of these
_NETWORK_ERRORS = (paramiko.SSHException, EOFError, ConnectionError, socket.timeout)


def partial_name(name: str) -> str:
    """Hidden name a snapshot is uploaded under until it is complete."""
    return f".{name}.part"


class RemoteStore(ABC):
    """Abstract snapshot store."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""

    @abstractmethod
    def group_exists(self, group: str) -> bool:
        """Whether the group directory exists."""

    @abstractmethod
    def list_groups(self) -> list[str]:
        """Names of all groups under the store root, sorted."""

    @abstractmethod
    def list_snapshots(self, group: str) -> list[SnapshotInfo]:
        """Snapshots in ``group`` sorted by name. Empty if the group is absent.

        Hidden files, such as uploads still in progress, are not listed.
        """

    @abstractmethod
    def create_group(self, group: str) -> None:
        """Create the group directory (and the root if needed)."""

    @abstractmethod
    def read_snapshot(self, group: str, name: str, dest: BinaryIO) -> int:
        """Stream a snapshot's bytes into ``dest``.

        Returns:
            Number of bytes written.

        Raises:
            TransferError: If the read fails part-way.
        """

    @abstractmethod
    def write_snapshot(self, group: str, name: str, source: BinaryIO) -> int:
        """Stream ``source`` into a new snapshot.

        Returns:
            Number of bytes stored.

        Raises:
            TransferError: If the write fails part-way.
        """

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""

    def __enter__(self) -> "RemoteStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SftpRemoteStore(RemoteStore):
    """Snapshot store on an SFTP server.

    The connection is opened by :meth:`connect` and held until
    :meth:`close`, so one session reuses one SSH transport.
    """

    def __init__(self, config: SessionConfig):
        if not config.host:
            raise ConfigError("No SFTP host configured")
        if not config.username:
            raise ConfigError("No SFTP username configured")
        self.config = config
        self.root = config.remote_root.rstrip("/") or "/"
        self._ssh: Optional[paramiko.SSHClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def name(self) -> str:
        return f"sftp://{self.config.username}@{self.config.host}:{self.config.port}"

    def connect(self) -> "SftpRemoteStore":
        """Open the SSH transport and SFTP channel.

        Raises:
            ConnectivityError: On DNS, socket, or authentication failure.
        """
        key_file = self.config.key_path
        if key_file is not None and not Path(key_file).expanduser().exists():
            raise ConnectivityError(f"No key file found at {key_file}")

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        logger.info("Connecting to %s", self.name)
        try:
            client.connect(
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.username,
                key_filename=str(Path(key_file).expanduser()) if key_file else None,
                look_for_keys=key_file is None,
                allow_agent=key_file is None,
                timeout=self.config.connect_timeout,
            )
            sftp = client.open_sftp()
        except paramiko.AuthenticationException as exc:
            client.close()
            raise ConnectivityError(
                f"Authentication failed for {self.config.username}@{self.config.host}: {exc}"
            ) from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise ConnectivityError(f"Cannot reach {self.config.host}: {exc}") from exc

        self._ssh = client
        self._sftp = sftp
        return self

    @property
    def sftp(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            raise ConnectivityError("SFTP store is not connected")
        transport = self._ssh.get_transport() if self._ssh else None
        if transport is None or not transport.is_active():
            # idle links drop while the game runs
            logger.info("SSH transport went away, reconnecting")
            self.close()
            self.connect()
        return self._sftp

    def _group_path(self, group: str) -> str:
        return posixpath.join(self.root, group)

    def group_exists(self, group: str) -> bool:
        try:
            attrs = self.sftp.stat(self._group_path(group))
        except FileNotFoundError:
            return False
        except _NETWORK_ERRORS as exc:
            raise ConnectivityError(f"Lost connection to {self.config.host}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Remote listing failed: {exc}") from exc
        return stat.S_ISDIR(attrs.st_mode or 0)

    def list_groups(self) -> list[str]:
        try:
            entries = self.sftp.listdir_attr(self.root)
        except FileNotFoundError:
            return []
        except _NETWORK_ERRORS as exc:
            raise ConnectivityError(f"Lost connection to {self.config.host}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Remote listing failed: {exc}") from exc
        return sorted(
            e.filename for e in entries
            if e.filename not in (".", "..") and stat.S_ISDIR(e.st_mode or 0)
        )

    def list_snapshots(self, group: str) -> list[SnapshotInfo]:
        try:
            entries = self.sftp.listdir_attr(self._group_path(group))
        except FileNotFoundError:
            return []
        except _NETWORK_ERRORS as exc:
            raise ConnectivityError(f"Lost connection to {self.config.host}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Remote listing failed: {exc}") from exc
        snapshots = [
            SnapshotInfo(group=group, name=e.filename, size=e.st_size or 0)
            for e in entries
            if not e.filename.startswith(".") and stat.S_ISREG(e.st_mode or 0)
        ]
        return sorted(snapshots, key=lambda s: s.name)

    def create_group(self, group: str) -> None:
        try:
            try:
                self.sftp.stat(self.root)
            except FileNotFoundError:
                self.sftp.mkdir(self.root)
            self.sftp.mkdir(self._group_path(group))
        except _NETWORK_ERRORS as exc:
            raise ConnectivityError(f"Lost connection to {self.config.host}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Cannot create group '{group}': {exc}") from exc
        logger.info("Created remote group %s", self._group_path(group))

    def read_snapshot(self, group: str, name: str, dest: BinaryIO) -> int:
        remote = posixpath.join(self._group_path(group), name)
        try:
            return self.sftp.getfo(remote, dest)
        except (OSError, *_NETWORK_ERRORS) as exc:
            raise TransferError(f"Download of {remote} failed: {exc}") from exc

    def write_snapshot(self, group: str, name: str, source: BinaryIO) -> int:
        remote = posixpath.join(self._group_path(group), name)
        partial = posixpath.join(self._group_path(group), partial_name(name))
        try:
            try:
                attrs = self.sftp.putfo(source, partial)
                # plain rename refuses to replace an existing snapshot
                self.sftp.rename(partial, remote)
            except (OSError, *_NETWORK_ERRORS) as exc:
                raise TransferError(f"Upload of {remote} failed: {exc}") from exc
        except BaseException:
            self._discard(partial)
            raise
        return attrs.st_size or 0

    def _discard(self, path: str) -> None:
        if self._sftp is None:
            return
        try:
            self._sftp.remove(path)
        except FileNotFoundError:
            pass
        except (OSError, *_NETWORK_ERRORS) as exc:
            logger.warning("Could not remove partial upload %s: %s", path, exc)

    def close(self) -> None:
        if self._sftp is not None:
            try:
                self._sftp.close()
            except _NETWORK_ERRORS as exc:
                logger.debug("Ignoring error closing SFTP channel: %s", exc)
            self._sftp = None
        if self._ssh is not None:
            self._ssh.close()
            self._ssh = None


class LocalRemoteStore(RemoteStore):
    """Snapshot store in a local or mounted directory."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    @property
    def name(self) -> str:
        return f"local:{self.root}"

    def connect(self) -> "LocalRemoteStore":
        if not self.root.is_dir():
            raise ConnectivityError(f"Store directory {self.root} is not available")
        return self

    def group_exists(self, group: str) -> bool:
        return (self.root / group).is_dir()

    def list_groups(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def list_snapshots(self, group: str) -> list[SnapshotInfo]:
        group_dir = self.root / group
        if not group_dir.is_dir():
            return []
        return sorted(
            (
                SnapshotInfo(group=group, name=p.name, size=p.stat().st_size)
                for p in group_dir.iterdir()
                if p.is_file() and not p.name.startswith(".")
            ),
            key=lambda s: s.name,
        )

    def create_group(self, group: str) -> None:
        try:
            (self.root / group).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TransferError(f"Cannot create group '{group}': {exc}") from exc
        logger.info("Created group %s", self.root / group)

    def read_snapshot(self, group: str, name: str, dest: BinaryIO) -> int:
        path = self.root / group / name
        try:
            with path.open("rb") as fh:
                shutil.copyfileobj(fh, dest)
        except OSError as exc:
            raise TransferError(f"Read of {path} failed: {exc}") from exc
        return path.stat().st_size

    def write_snapshot(self, group: str, name: str, source: BinaryIO) -> int:
        path = self.root / group / name
        partial = path.with_name(partial_name(name))
        if path.exists():
            raise TransferError(f"Write of {path} failed: snapshot already exists")
        try:
            try:
                with partial.open("wb") as fh:
                    shutil.copyfileobj(source, fh)
                partial.rename(path)
            except OSError as exc:
                raise TransferError(f"Write of {path} failed: {exc}") from exc
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        return path.stat().st_size


def create_store(config: SessionConfig) -> RemoteStore:
    """Build and connect the store named in the config.

    Raises:
        ConfigError: If the store type is unsupported or underconfigured.
        ConnectivityError: If the store cannot be reached.
    """
    if config.store == StoreType.SFTP:
        return SftpRemoteStore(config).connect()
    if config.store == StoreType.LOCAL:
        if config.local_store_path is None:
            raise ConfigError("store is 'local' but no local_store_path is set")
        return LocalRemoteStore(config.local_store_path).connect()
    raise ConfigError(f"Unsupported store: {config.store}")
