"""
Version clock -- instants to sortable snapshot tokens and back.

A token is a UTC instant rendered as ``yyMMdd-HHmmss``. Fixed width and
most-significant field first, so sorting snapshot names sorts them by
time. Resolution is one second: two instants in the same second produce
the same token and compare equal everywhere.

UTC rather than wall-clock time, because the wall clock repeats an hour
when daylight saving ends and two different saves would share a token.
Instants handed around the package are naive datetimes holding UTC;
only :func:`describe` converts back to local time, for display.

    encode(datetime(2024, 3, 9, 18, 4, 55))  ->  "240309-180455"
    snapshot_name(...)                      ->  "240309-180455.sav"
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from .errors import ClockRangeError, TokenFormatError

TOKEN_FORMAT = "%y%m%d-%H%M%S"
TOKEN_LENGTH = 13
SNAPSHOT_SUFFIX = ".sav"

# strptime maps two-digit years 00-68 to 2000-2068 and 69-99 to the
# previous century, so only this window survives a round trip.
MIN_INSTANT = datetime(2000, 1, 1, 0, 0, 0)
MAX_INSTANT = datetime(2068, 12, 31, 23, 59, 59)

_TOKEN_RE = re.compile(r"^\d{6}-\d{6}$")


def truncate(instant: datetime) -> datetime:
    """Drop everything finer than the token resolution.

    Timezone-aware instants are converted to naive UTC first.
    """
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return instant.replace(microsecond=0)


def from_timestamp(mtime: float) -> datetime:
    """Convert an ``st_mtime`` value to a truncated UTC instant."""
    return truncate(datetime.fromtimestamp(mtime, timezone.utc))


def to_timestamp(instant: datetime) -> float:
    """POSIX timestamp of a naive UTC instant, for ``os.utime``."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.timestamp()


def encode(instant: datetime) -> str:
    """Render an instant as a snapshot token.

    Raises:
        ClockRangeError: If the instant falls outside the two-digit-year window.
    """
    instant = truncate(instant)
    if not MIN_INSTANT <= instant <= MAX_INSTANT:
        raise ClockRangeError(
            f"{instant.isoformat()} is outside the token range "
            f"{MIN_INSTANT.year}-{MAX_INSTANT.year}"
        )
    return instant.strftime(TOKEN_FORMAT)


def decode(token: str) -> datetime:
    """Parse a token back into a naive UTC instant.

    Raises:
        TokenFormatError: If the token is not ``yyMMdd-HHmmss``.
    """
    if not _TOKEN_RE.match(token):
        raise TokenFormatError(f"Not a snapshot token: {token!r}")
    try:
        return datetime.strptime(token, TOKEN_FORMAT)
    except ValueError as exc:
        raise TokenFormatError(f"Not a snapshot token: {token!r} ({exc})") from exc


def snapshot_name(instant: datetime) -> str:
    """Name of the snapshot file that records ``instant``."""
    return encode(instant) + SNAPSHOT_SUFFIX


def token_of(name: str) -> str:
    """Strip the content-type suffix from a snapshot name."""
    if name.endswith(SNAPSHOT_SUFFIX):
        return name[: -len(SNAPSHOT_SUFFIX)]
    return name


def instant_of(name: str) -> Optional[datetime]:
    """Decode a snapshot name, or return None if it is not a token."""
    try:
        return decode(token_of(name))
    except TokenFormatError:
        return None


def describe(instant: datetime) -> str:
    """Short local-time form used in status lines, e.g. ``3/9/2024 18:04``."""
    local = instant.replace(tzinfo=timezone.utc).astimezone()
    return f"{local.month}/{local.day}/{local.year} {local:%H:%M}"
