"""
Time Utilities

CoinDCX mixes timestamp formats:
- Stream frames: milliseconds since epoch (e.g., 1700000000000)
- REST order payloads: ISO-8601 strings (e.g., "2024-01-01T12:00:00.000Z")
- Request nonces: milliseconds since epoch

Canonical events carry epoch milliseconds, so everything is normalized to
integer milliseconds here.
"""

from datetime import datetime, timezone
from typing import Union

from dateutil import parser as dateparser


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400

        >>> datetime_to_timestamp(dt, milliseconds=True)
        1704110400000

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    if milliseconds:
        return int(round(dt.timestamp() * 1000))

    return int(dt.timestamp())


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """
    Get current UTC timestamp.

    Args:
        milliseconds: If True, return milliseconds; if False, return seconds

    Examples:
        >>> current_utc_timestamp(milliseconds=True)
        1704110400000
    """
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def to_epoch_millis(value: Union[int, float, str, datetime]) -> int:
    """
    Normalize any CoinDCX timestamp representation to epoch milliseconds.

    Detection Logic:
        - datetime: converted directly
        - numeric string: parsed as a number
        - other string: parsed as ISO-8601
        - number > 1e12: already milliseconds
        - otherwise: seconds

    Raises:
        ValueError: If the value is negative or cannot be parsed

    Examples:
        >>> to_epoch_millis(1700000000000)
        1700000000000
        >>> to_epoch_millis("2024-01-01T12:00:00Z")
        1704110400000
    """
    if isinstance(value, datetime):
        return datetime_to_timestamp(value, milliseconds=True)

    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            try:
                return datetime_to_timestamp(dateparser.isoparse(text), milliseconds=True)
            except (ValueError, OverflowError) as e:
                raise ValueError(f"Invalid timestamp: {value!r}. Error: {e}")

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid timestamp: {value!r}")

    if value < 0:
        raise ValueError(f"Timestamp cannot be negative: {value}")

    # 1e12 ms is September 2001; 1e12 s is the year 33658
    if value > 1e12:
        return int(value)

    return int(value * 1000)
