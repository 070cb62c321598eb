import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

OFFSET_PATTERN = re.compile(r"([+-])(\d{2}):(\d{2})$")

# (timestamp, timezone name, window 'from' literal) -> hour, or None to defer
HourStrategy = Callable[[datetime, Optional[str], Optional[str]], Optional[int]]


def _aware(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def named_zone_hour(timestamp: datetime, tz_name: Optional[str], window_from: Optional[str]) -> Optional[int]:
    if not tz_name:
        return None
    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        logger.debug(f"Timezone {tz_name!r} is not in the timezone database.")
        return None
    return _aware(timestamp).astimezone(zone).hour


def parse_utc_offset(value: Optional[str]) -> Optional[timedelta]:
    """Reads a trailing '+HH:MM' / '-HH:MM' offset from an ISO-8601 string."""
    if not value:
        return None
    match = OFFSET_PATTERN.search(value.strip())
    if not match:
        return None
    sign, hours, minutes = match.groups()
    offset = timedelta(hours=int(hours), minutes=int(minutes))
    if offset >= timedelta(hours=24):
        return None
    return -offset if sign == "-" else offset


def window_offset_hour(timestamp: datetime, tz_name: Optional[str], window_from: Optional[str]) -> Optional[int]:
    offset = parse_utc_offset(window_from)
    if offset is None:
        return None
    shifted = _aware(timestamp).astimezone(timezone.utc) + offset
    return shifted.hour


def local_time_hour(timestamp: datetime, tz_name: Optional[str], window_from: Optional[str]) -> Optional[int]:
    try:
        return _aware(timestamp).astimezone().hour
    except (OverflowError, OSError, ValueError):
        return None


HOUR_STRATEGIES: Tuple[Tuple[str, HourStrategy], ...] = (
    ("named_zone", named_zone_hour),
    ("offset_from_window", window_offset_hour),
    ("local_time", local_time_hour),
)


def hour_in_timezone(
    timestamp: datetime,
    tz_name: Optional[str] = None,
    window_from: Optional[str] = None,
    strategies: Sequence[Tuple[str, HourStrategy]] = HOUR_STRATEGIES,
) -> int:
    """
    Maps an instant to an hour of day (0-23) in the target civil timezone.

    Strategies are tried in order and the first one that yields an hour wins:
    the named IANA zone, then a fixed offset read from the end of the window's
    'from' literal, then the process-local timezone. Never raises; if every
    strategy defers, the UTC hour is returned.
    """
    for name, strategy in strategies:
        hour = strategy(timestamp, tz_name, window_from)
        if hour is not None:
            if name != strategies[0][0]:
                logger.debug(f"Resolved hour via '{name}' strategy.")
            return hour
    return _aware(timestamp).astimezone(timezone.utc).hour

