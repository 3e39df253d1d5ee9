# Overview: Timestamp helpers for document fields (createdAt/updatedAt, order dates, report ranges).

"""
Document timestamps are ISO-8601 strings in UTC with a trailing "Z"
("2026-10-19T08:30:00Z"). Order dates are plain "YYYY-MM-DD".

Internally every comparison (date filters, report ranges) uses UTC-naive
datetimes so stored strings and query parameters compare directly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time, UTC-naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a document timestamp, an order date or a filter parameter.

    Accepts "YYYY-MM-DD" (midnight), naive "YYYY-MM-DDTHH:MM[:SS]" (taken as
    UTC) and offset or "Z" forms (converted to UTC). Returns a UTC-naive
    datetime, or None for None/blank. Raises ValueError for anything else.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to the document timestamp format (seconds precision, trailing Z)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def now_iso() -> str:
    """createdAt/updatedAt value for a write happening now."""
    return to_utc_z(utcnow())


def today_iso() -> str:
    """Business date stamped on new orders."""
    return utcnow().date().isoformat()
