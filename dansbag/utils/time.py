"""Time and datetime utilities."""

from datetime import datetime, timezone

# Date, time with fractional seconds, and zone: 2015-09-09T12:00:00.000+02:00
ISO8601_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso8601_datetime(value: str) -> datetime:
    """Parse a full ISO 8601 date-time with fractional seconds and an offset.

    bag-info.txt `Created` values must carry date, time including fractional
    seconds, and zone, e.g. ``2015-09-09T12:00:00.000+02:00``. Date-only
    values and values without fractional seconds are rejected.

    Args:
        value: Date-time string

    Returns:
        Parsed timezone-aware datetime

    Raises:
        ValueError: If the value is not a full ISO 8601 date-time
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        return datetime.strptime(text, ISO8601_DATETIME_FORMAT)
    except ValueError:
        raise ValueError(f"Could not parse datetime: {value}") from None
