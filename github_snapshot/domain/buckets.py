from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from github_snapshot.domain.models import ResolvedWindow
from github_snapshot.domain.timezones import hour_in_timezone


def bucket_index(timestamp: datetime, window: ResolvedWindow, tz_name: Optional[str] = None) -> Optional[int]:
    """
    Returns the bucket a timestamp falls into, or None if it lies outside the
    window or the bucket range.

    With one bucket per clock hour the index is the civil hour in ``tz_name``;
    otherwise it is the offset from the window start in bucket widths.
    """
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if not window.contains(timestamp):
        return None

    scheme = window.scheme
    if scheme.hour_of_day:
        index = hour_in_timezone(timestamp, tz_name, window.raw_from)
    else:
        elapsed_hours = (timestamp - window.start).total_seconds() / 3600
        # The closing instant belongs to the last bucket.
        index = min(int(elapsed_hours // scheme.size_hours), scheme.count - 1)

    if 0 <= index < scheme.count:
        return index
    return None


def bucket_timestamps(
    timestamps: Iterable[datetime], window: ResolvedWindow, tz_name: Optional[str] = None
) -> List[int]:
    counts = [0] * window.scheme.count
    for timestamp in timestamps:
        index = bucket_index(timestamp, window, tz_name)
        if index is not None:
            counts[index] += 1
    return counts


def select_peak(counts: Sequence[int]) -> Optional[int]:
    """
    Index of the busiest bucket. Ties go to the lowest index, and an all-zero
    histogram has no peak (None, never 0).
    """
    peak: Optional[int] = None
    best = 0
    for index, count in enumerate(counts):
        if count > best:
            best = count
            peak = index
    return peak
