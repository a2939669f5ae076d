"""Utilities for reading server-assigned dates and timestamps."""

from __future__ import annotations

from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union

Number = Union[int, float]
Scalar = Union[Number, str, date]


def ensure_utc(dt: datetime) -> datetime:
    """Normalise ``dt`` to a timezone-aware UTC ``datetime``."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_epoch_seconds(value: Optional[Scalar]) -> Optional[datetime]:
    """Convert ``value`` representing epoch seconds to a UTC ``datetime``."""

    if value in (None, "", b""):
        return None
    try:
        seconds = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _parse_text(text: str) -> datetime:
    cleaned = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        pass
    raise ValueError(f"Unrecognised timestamp: {text!r}")


def parse_timestamp(value: Optional[Scalar]) -> Optional[datetime]:
    """Return a UTC ``datetime`` for ``value``.

    Accepts ISO 8601 text (with or without a trailing ``Z``), RFC 1123 HTTP
    dates such as ``"Tue, 05 Mar 2024 14:30:00 GMT"`` (what Flask's JSON
    encoder emits for datetimes), epoch seconds, and ``date``/``datetime``
    instances. Raises ``ValueError`` for text it cannot read.
    """

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return from_epoch_seconds(value)
    return ensure_utc(_parse_text(str(value).strip()))


def parse_date(value: Optional[Scalar]) -> Optional[date]:
    """Return the calendar date for ``value``.

    Datetimes keep the offset they were sent with; a late-evening value at
    ``-05:00`` stays on its own day.
    """

    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        return _parse_text(text).date()
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None


def format_local(dt: Optional[datetime]) -> str:
    """Render ``dt`` in the local timezone for display, or ``""``."""

    if dt is None:
        return ""
    return ensure_utc(dt).astimezone().strftime("%Y-%m-%d %H:%M:%S")


__all__ = ["ensure_utc", "from_epoch_seconds", "parse_timestamp", "parse_date", "format_local"]
