"""Timestamp decoding shared by the entity and log parsers.

Claude writes two encodings: RFC3339 strings (``2026-02-10T10:00:00.123Z``)
and epoch milliseconds (``1770717600000``).  Every helper here returns a
timezone-aware UTC ``datetime`` or ``None``; none of them raise.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

# fromisoformat before 3.11 only takes 3 or 6 fractional digits.
_FRACTION = re.compile(r"\.(\d+)")


def _six_digit_fraction(match: "re.Match[str]") -> str:
    return "." + match.group(1)[:6].ljust(6, "0")


def parse_rfc3339(value: Any) -> Optional[datetime]:
    """Parse an RFC3339 / ISO-8601 string, or return ``None``."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(_six_digit_fraction, text, count=1)
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_epoch_ms(value: Any) -> Optional[datetime]:
    """Convert epoch milliseconds to a UTC datetime; non-positive means unset."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def pick_timestamp(ms: Any, text: Any) -> Optional[datetime]:
    """Return the millisecond form when positive, else the RFC3339 form."""
    return from_epoch_ms(ms) or parse_rfc3339(text)


def ensure_utc(value: Any) -> Any:
    """Pydantic ``before`` validator body: coerce naive/str datetimes to UTC."""
    if isinstance(value, str):
        return parse_rfc3339(value) or value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return value
