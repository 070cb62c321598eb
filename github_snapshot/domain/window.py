import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from github_snapshot.domain.models import IntervalScheme, ResolvedWindow, TimeWindow

logger = logging.getLogger(__name__)

DEFAULT_DURATION = timedelta(hours=24)
DURATION_PATTERN = re.compile(r"^(\d+)([hd])$")
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def parse_duration(duration: Optional[str]) -> timedelta:
    """
    Parses "Nh" or "Nd" into a timedelta.

    Anything else, including a zero-length or out-of-range span, resolves
    to 24 hours.
    """
    match = DURATION_PATTERN.match((duration or "").strip())
    if not match:
        return DEFAULT_DURATION

    value = int(match.group(1))
    if value == 0:
        return DEFAULT_DURATION
    try:
        if match.group(2) == "d":
            return timedelta(days=value)
        return timedelta(hours=value)
    except OverflowError:
        logger.warning(f"Duration {duration!r} is out of range; using 24h.")
        return DEFAULT_DURATION


def parse_timestamp(raw: str) -> datetime:
    """Parses an ISO-8601 instant; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def interval_scheme_for(span: timedelta) -> IntervalScheme:
    """
    Adaptive bucket sizing that keeps the bucket count near 24-72:
    1h up to a day, 2h up to two days, 3h up to three, then ceil(span/24).
    """
    span_hours = span.total_seconds() / 3600
    if span_hours <= 24:
        size = 1
    elif span_hours <= 48:
        size = 2
    elif span_hours <= 72:
        size = 3
    else:
        size = math.ceil(span_hours / 24)

    count = max(math.ceil(span_hours / size), 1)
    return IntervalScheme(size_hours=size, count=count)


def _shift_back(end: datetime, duration: timedelta) -> datetime:
    """`end - duration`, shortened to 24h (or whatever fits) when that would predate year 1."""
    available = end - EARLIEST
    if duration > available:
        logger.warning("Window start is out of range; using a window of at most 24h.")
        duration = min(DEFAULT_DURATION, available)
    return end - duration


def _explicit_bound(raw: Optional[str], label: str) -> Optional[datetime]:
    if not raw:
        return None
    try:
        return parse_timestamp(raw).astimezone(timezone.utc)
    except (ValueError, OverflowError):
        logger.warning(f"Ignoring unparseable '{label}' bound: {raw!r}")
        return None


def resolve_window(window: Optional[TimeWindow] = None, now: Optional[datetime] = None) -> ResolvedWindow:
    """
    Turns a TimeWindow into concrete UTC bounds and an interval scheme.

    Explicit bounds win over the duration. A lone ``from`` runs until now and
    a lone ``to`` starts one duration earlier. Reversed bounds are swapped.
    """
    window = window or TimeWindow()
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    duration = parse_duration(window.duration)

    start = _explicit_bound(window.from_, "from")
    end = _explicit_bound(window.to, "to")
    explicit_from = start is not None

    if start is None and end is None:
        start, end = _shift_back(now, duration), now
    elif end is None:
        end = now
    elif start is None:
        start = _shift_back(end, duration)

    start = start.astimezone(timezone.utc)
    end = end.astimezone(timezone.utc)
    if start > end:
        logger.warning("Window bounds are reversed; swapping 'from' and 'to'.")
        start, end = end, start

    raw_from = window.from_ if explicit_from else None
    return ResolvedWindow(
        start=start,
        end=end,
        scheme=interval_scheme_for(end - start),
        raw_from=raw_from,
    )
