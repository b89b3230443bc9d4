"""Tests for local-day to UTC instant conversion."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tokendrop_api.errors import InvalidRange
from tokendrop_api.ledger.timewindow import (
    day_window,
    format_local_timestamp,
    local_day_end,
    local_day_start,
    parse_calendar_date,
    to_naive_utc,
)

JST = timezone(timedelta(hours=9))


def test_single_local_day_covers_whole_day():
    """A one-day filter spans local midnight to 23:59:59.999."""
    window = day_window("2024-06-01", "2024-06-01", JST)

    assert window.start == datetime(2024, 5, 31, 15, 0, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2024, 6, 1, 14, 59, 59, 999000, tzinfo=timezone.utc)


def test_window_boundaries_are_inclusive():
    window = day_window("2024-06-01", "2024-06-01", JST)

    assert window.contains(datetime(2024, 5, 31, 15, 0, 0, tzinfo=timezone.utc))
    assert window.contains(datetime(2024, 6, 1, 14, 59, 59, 999000, tzinfo=timezone.utc))
    assert not window.contains(datetime(2024, 5, 31, 14, 59, 59, 999999, tzinfo=timezone.utc))
    assert not window.contains(datetime(2024, 6, 1, 15, 0, 0, tzinfo=timezone.utc))


def test_naive_instants_are_treated_as_utc():
    window = day_window("2024-06-01", None, JST)
    assert window.contains(datetime(2024, 5, 31, 15, 0, 0))
    assert not window.contains(datetime(2024, 5, 31, 14, 0, 0))


def test_unbounded_window():
    window = day_window(None, "", JST)
    assert window.start is None
    assert window.end is None
    assert not window.is_bounded
    assert window.contains(datetime(1999, 1, 1))


def test_open_ended_bounds():
    start_only = day_window("2024-06-01", None, JST)
    end_only = day_window(None, "2024-06-01", JST)

    assert start_only.is_bounded and start_only.end is None
    assert end_only.is_bounded and end_only.start is None


def test_start_after_end_matches_nothing():
    window = day_window("2024-06-02", "2024-06-01", JST)
    assert not window.contains(datetime(2024, 6, 1, 12, 0, tzinfo=JST))
    assert not window.contains(datetime(2024, 6, 2, 12, 0, tzinfo=JST))


@pytest.mark.parametrize(
    "value",
    [
        "2024-13-01",
        "2024-02-30",
        "06/01/2024",
        "yesterday",
        "2024-6-1x",
        "2024-6-1",
        " 2024-06-01",
        "2024-06-01 ",
        "2024-06-01\n",
    ],
)
def test_invalid_dates_raise_invalid_range(value):
    with pytest.raises(InvalidRange) as exc_info:
        day_window(value, None, JST)
    assert exc_info.value.status_code == 400
    assert exc_info.value.context["start"] == value


def test_invalid_end_names_the_field():
    with pytest.raises(InvalidRange) as exc_info:
        day_window("2024-06-01", "nope", JST)
    assert "end" in exc_info.value.context


def test_date_objects_are_accepted():
    assert parse_calendar_date(date(2024, 6, 1)) == date(2024, 6, 1)


def test_datetime_bound_is_rejected():
    with pytest.raises(InvalidRange):
        parse_calendar_date(datetime(2024, 6, 1, 12, 0))


def test_day_helpers_and_formatting():
    day = date(2024, 1, 1)
    assert local_day_start(day, JST).isoformat() == "2023-12-31T15:00:00+00:00"
    assert local_day_end(day, JST).isoformat() == "2024-01-01T14:59:59.999000+00:00"
    assert to_naive_utc(datetime(2024, 1, 1, 9, 0, tzinfo=JST)) == datetime(2024, 1, 1, 0, 0)
    assert format_local_timestamp(datetime(2023, 12, 31, 15, 0, 0), JST) == "2024-01-01 00:00:00"


def test_non_string_bound_is_rejected():
    with pytest.raises(InvalidRange):
        parse_calendar_date(20240601)


def test_first_calendar_day_clamps_to_earliest_instant():
    window = day_window("0001-01-01", "0001-01-01", JST)
    assert window.start == datetime.min.replace(tzinfo=timezone.utc)
    assert window.contains(datetime(1, 1, 1, 0, 0))
    assert window.contains(datetime(1, 1, 1, 14, 59))


def test_last_calendar_day_clamps_to_latest_instant():
    west = timezone(timedelta(hours=-9))
    window = day_window("9999-12-31", "9999-12-31", west)
    assert window.end == datetime.max.replace(tzinfo=timezone.utc)
    assert window.contains(datetime(9999, 12, 31, 23, 59, 59))
    assert not window.contains(datetime(9999, 12, 31, 8, 59))
