"""Timestamp parsing and normalisation for session index data."""

import re
from datetime import datetime, timezone

# Fractional seconds of any length; fromisoformat on 3.10 only takes 3 or 6 digits
_FRACTION_RE = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def _pad_fraction(match: re.Match) -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts "2026-02-13T12:00:00.000Z", explicit offsets, and naive values
    (read as UTC). Fractions of a second may have any number of digits.
    Returns None for anything unparsable, including non-string values.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(_pad_fraction, text, count=1)
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime in the cache's canonical form.

    2026-01-01T10:00:00.000Z. Every stored timestamp uses this shape so
    string order is chronological order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def duration_ms(start: datetime, end: datetime) -> int:
    """Milliseconds from ``start`` to ``end``; negative if end is earlier."""
    delta = end - start
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def utc_now() -> str:
    return format_timestamp(datetime.now(timezone.utc))
