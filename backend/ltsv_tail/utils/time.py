"""Time helpers."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
NANOS_PER_SECOND = 1_000_000_000

_ISO_ALIASES = frozenset({"rfc3339", "iso8601"})
# datetime stops at microseconds; digits 7 to 9 of a fraction are handled here
_LONG_FRACTION_RE = re.compile(r"(?<=\d)[.,](\d{7,9})(?!\d)")


def datetime_to_ns(value: datetime) -> int:
    """Return nanoseconds since the epoch; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    seconds = delta.days * 86400 + delta.seconds
    return seconds * NANOS_PER_SECOND + delta.microseconds * 1000


def ns_to_datetime(value: int) -> datetime:
    """Return a UTC datetime for nanoseconds since the epoch (sub-microsecond part dropped)."""
    return EPOCH + timedelta(microseconds=value // 1000)


def _split_sub_micros(value: str) -> tuple[str, int]:
    match = _LONG_FRACTION_RE.search(value)
    if match is None:
        return value, 0
    digits = match.group(1)
    extra_ns = int(digits[6:].ljust(3, "0"))
    return value[: match.start(1)] + digits[:6] + value[match.end(1) :], extra_ns


def parse_time(value: str, time_format: str) -> int:
    """Parse ``value`` with a strptime pattern or an ISO alias into epoch nanoseconds.

    Fractions of up to nine digits keep their nanoseconds.
    """
    value, extra_ns = _split_sub_micros(value)
    if time_format.lower() in _ISO_ALIASES:
        if value[-1:] in ("Z", "z"):
            value = value[:-1] + "+00:00"
        parsed = datetime.fromisoformat(value)
    else:
        parsed = datetime.strptime(value, time_format)
    return datetime_to_ns(parsed) + extra_ns


def format_rfc3339_ns(value: int) -> str:
    """Format epoch nanoseconds as RFC 3339 in UTC with nanosecond precision."""
    seconds, nanos = divmod(value, NANOS_PER_SECOND)
    base = (EPOCH + timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%S")
    if nanos:
        return f"{base}.{nanos:09d}".rstrip("0") + "Z"
    return f"{base}Z"
