"""
Exception hierarchy for SyncFactory.

Conflicts are not errors. A refused publish is a normal outcome that
comes back as a PassResult, never as an exception.
"""

from __future__ import annotations


class SyncFactoryError(Exception):
    """Base class for all SyncFactory failures."""


class ConnectivityError(SyncFactoryError):
    """The remote store could not be reached or refused authentication."""


class TransferError(SyncFactoryError):
    """A snapshot read or write failed part-way through."""


class ArtifactNotFoundError(SyncFactoryError):
    """No local save exists for the configured logical name."""

    def __init__(self, name: str, search_dir=None):
        self.name = name
        self.search_dir = search_dir
        where = f" in {search_dir}" if search_dir else ""
        super().__init__(f"No local save found for '{name}'{where}")


class ConfigError(SyncFactoryError):
    """The configuration file is missing required values or is malformed."""


class ClockRangeError(SyncFactoryError, ValueError):
    """An instant cannot be represented as a snapshot token."""


class LaunchError(SyncFactoryError):
    """The game could not be started."""


class TokenFormatError(SyncFactoryError, ValueError):
    """A snapshot name does not carry a valid timestamp token."""
