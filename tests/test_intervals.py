"""Tests for the half-open interval model."""

from datetime import date, datetime, time

import pytest

from eventops.domain.scheduling.exceptions import InvalidWindow
from eventops.domain.scheduling.intervals import (
    Interval,
    contains,
    date_span,
    duration,
    merge,
    overlaps,
    split_by_day,
    time_of_day_window,
    weekday_of,
)


def dt(hour, minute=0, day=7):
    return datetime(2030, 1, day, hour, minute)


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (Interval(dt(10), dt(11)), Interval(dt(10, 30), dt(11, 30)), True),
        (Interval(dt(10), dt(12)), Interval(dt(10, 30), dt(11)), True),
        (Interval(dt(14), dt(15)), Interval(dt(15), dt(16)), False),
        (Interval(dt(9), dt(10)), Interval(dt(11), dt(12)), False),
        (Interval(dt(10), dt(11)), Interval(dt(10), dt(11)), True),
    ],
)
def test_overlaps_is_symmetric(a, b, expected):
    assert overlaps(a, b) is expected
    assert overlaps(b, a) is expected


def test_back_to_back_windows_do_not_overlap():
    earlier = Interval(dt(14), dt(15))
    later = Interval(dt(15), dt(16))

    assert not overlaps(earlier, later)
    assert not overlaps(later, earlier)


def test_contains_accepts_shared_edges():
    outer = Interval(9 * 60, 17 * 60)

    assert contains(outer, Interval(9 * 60, 17 * 60))
    assert contains(outer, Interval(10 * 60, 10 * 60 + 30))
    assert not contains(outer, Interval(16 * 60 + 30, 17 * 60 + 30))
    assert not contains(outer, Interval(8 * 60, 9 * 60 + 30))


def test_duration_in_minutes():
    assert duration(Interval(dt(10), dt(11, 30))) == 90
    assert duration(Interval(60, 75)) == 15


@pytest.mark.parametrize("start,end", [(dt(11), dt(10)), (dt(10), dt(10)), (None, dt(10))])
def test_invalid_windows_are_rejected(start, end):
    with pytest.raises(InvalidWindow):
        Interval(start, end)


def test_time_of_day_window_treats_midnight_end_as_end_of_day():
    window = time_of_day_window(time(18), time(0))

    assert window == Interval(18 * 60, 24 * 60)


def test_merge_unions_overlapping_and_touching_windows():
    merged = merge(
        [
            Interval(13 * 60, 17 * 60),
            Interval(9 * 60, 12 * 60),
            Interval(12 * 60, 13 * 60),
            Interval(19 * 60, 20 * 60),
        ]
    )

    assert merged == [Interval(9 * 60, 17 * 60), Interval(19 * 60, 20 * 60)]


def test_split_by_day_for_window_crossing_midnight():
    window = Interval(datetime(2030, 1, 7, 22), datetime(2030, 1, 8, 2))

    assert split_by_day(window) == [
        (date(2030, 1, 7), Interval(22 * 60, 24 * 60)),
        (date(2030, 1, 8), Interval(0, 2 * 60)),
    ]


def test_window_ending_at_midnight_stays_on_one_day():
    window = Interval(datetime(2030, 1, 7, 20), datetime(2030, 1, 8, 0))

    assert date_span(window) == Interval(date(2030, 1, 7), date(2030, 1, 8))
    assert split_by_day(window) == [(date(2030, 1, 7), Interval(20 * 60, 24 * 60))]


def test_weekday_numbering_starts_on_sunday():
    assert weekday_of(date(2030, 1, 6)) == 0  # Sunday
    assert weekday_of(date(2030, 1, 7)) == 1  # Monday
    assert weekday_of(date(2030, 1, 12)) == 6  # Saturday
