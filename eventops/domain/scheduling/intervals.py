"""
Interval model for the scheduling engine.

All intervals are half-open ``[start, end)``: a window ending at 15:00 and one
starting at 15:00 touch but do not overlap, which is what allows back-to-back
bookings. Endpoints may be datetimes, dates or minute offsets; the only
requirement is that they are mutually comparable. Timestamps are naive and
already expressed in the business time zone - no zone conversion happens here.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator

from .exceptions import InvalidWindow

MINUTES_PER_DAY = 24 * 60


class Interval:
    """Half-open window ``[start, end)`` with ``start < end``"""

    __slots__ = ("start", "end")

    def __init__(self, start, end):
        if start is None or end is None:
            raise InvalidWindow("Window start and end are required")
        if not start < end:
            raise InvalidWindow(f"Window start ({start}) must be before its end ({end})")
        self.start = start
        self.end = end

    def __eq__(self, other):
        if not isinstance(other, Interval):
            return NotImplemented
        return self.start == other.start and self.end == other.end

    def __hash__(self):
        return hash((self.start, self.end))

    def __repr__(self):
        return f"Interval({self.start!r}, {self.end!r})"


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def duration(a: Interval) -> int:
    """Length in whole minutes"""
    span = a.end - a.start
    if isinstance(span, timedelta):
        return int(span.total_seconds() // 60)
    return int(span)


def minute_of_day(value: time, end_of_day: bool = False) -> int:
    """Minutes since midnight. With ``end_of_day``, 00:00 reads as 24:00."""
    minutes = value.hour * 60 + value.minute
    if end_of_day and minutes == 0:
        return MINUTES_PER_DAY
    return minutes


def time_of_day_window(start: time, end: time) -> Interval:
    """Daily window in minutes; an end of 00:00 closes the window at midnight"""
    return Interval(minute_of_day(start), minute_of_day(end, end_of_day=True))


def weekday_of(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def date_span(window: Interval) -> Interval:
    """Calendar days touched by an absolute window, as ``[first_day, last_day + 1)``"""
    first_day = window.start.date()
    last_moment = window.end - timedelta(microseconds=1)
    return Interval(first_day, last_moment.date() + timedelta(days=1))


def iter_days(span: Interval) -> Iterator[date]:
    day = span.start
    while day < span.end:
        yield day
        day += timedelta(days=1)


def split_by_day(window: Interval) -> list[tuple[date, Interval]]:
    """
    Split an absolute window into per-day time-of-day segments.

    Returns ``(day, Interval(start_minute, end_minute))`` pairs; a segment that
    runs to midnight ends at minute 1440.
    """
    segments = []
    for day in iter_days(date_span(window)):
        day_start = datetime.combine(day, time.min)
        seg_start = max(window.start, day_start)
        seg_end = min(window.end, day_start + timedelta(days=1))
        start_minute = int((seg_start - day_start).total_seconds() // 60)
        # Round the end up so a partial minute still has to fit
        end_minute = int(-(-(seg_end - day_start).total_seconds() // 60))
        segments.append((day, Interval(start_minute, end_minute)))
    return segments


def at_day(day: date, daily: Interval) -> Interval:
    """Anchor a minute-based daily window on a calendar day"""
    day_start = datetime.combine(day, time.min)
    return Interval(day_start + timedelta(minutes=daily.start), day_start + timedelta(minutes=daily.end))


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of intervals; overlapping or touching ones are coalesced"""
    merged: list[Interval] = []
    for current in sorted(intervals, key=lambda i: (i.start, i.end)):
        if merged and current.start <= merged[-1].end:
            if current.end > merged[-1].end:
                merged[-1] = Interval(merged[-1].start, current.end)
        else:
            merged.append(current)
    return merged
