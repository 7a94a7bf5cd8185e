"""
Time Utilities

Binance sends kline open times as milliseconds since epoch, while the HTTP API
exposes candle times as timezone-aware UTC datetimes. to_utc_datetime converts
from the former to the latter.
"""

from datetime import datetime, timezone
from typing import Union


def to_utc_datetime(timestamp: Union[int, float, str]) -> datetime:
    """
    Convert an epoch timestamp (seconds or milliseconds) to a UTC datetime.

    Values above 1e12 are treated as milliseconds, anything else as seconds.
    Numeric strings are accepted because some Binance payloads quote them.

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime in UTC

    Raises:
        ValueError: If timestamp is negative or cannot be converted

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if isinstance(timestamp, str):
        try:
            timestamp = float(timestamp)
        except ValueError:
            raise ValueError(f"Invalid timestamp: {timestamp!r}")

    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")
