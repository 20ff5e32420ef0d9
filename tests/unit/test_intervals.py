"""Test timezone-aware time primitives."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from salon_booking.core.exceptions import InvalidDateError, InvalidInputError
from salon_booking.scheduling.intervals import (
    TimeWindow,
    format_wall_clock,
    get_zone,
    local_datetime,
    parse_iso_date,
    parse_wall_clock,
    shift_wall_clock,
    to_local_wall_clock,
)

NEW_YORK = ZoneInfo("America/New_York")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestWallClock:
    """Test HH:mm parsing and arithmetic."""

    def test_parse_valid_times(self):
        assert parse_wall_clock("00:00") == 0
        assert parse_wall_clock("09:30") == 570
        assert parse_wall_clock("23:59") == 1439

    def test_end_of_day_allowed(self):
        assert parse_wall_clock("24:00") == 1440

    @pytest.mark.parametrize("value", ["9:30", "24:30", "12:60", "", "noon", None])
    def test_parse_invalid_times(self, value):
        with pytest.raises(InvalidInputError):
            parse_wall_clock(value)

    def test_format(self):
        assert format_wall_clock(570) == "09:30"
        assert format_wall_clock(1440) == "24:00"

    def test_shift_forward_and_back(self):
        assert shift_wall_clock("10:00", 75) == "11:15"
        assert shift_wall_clock("10:00", -15) == "09:45"

    def test_shift_is_clamped_to_the_day(self):
        assert shift_wall_clock("00:10", -30) == "00:00"
        assert shift_wall_clock("23:50", 30) == "24:00"


class TestDates:
    """Test date and timezone resolution."""

    def test_parse_iso_date(self):
        assert parse_iso_date("2024-03-04") == date(2024, 3, 4)
        assert parse_iso_date(date(2024, 3, 4)) == date(2024, 3, 4)
        assert parse_iso_date(utc(2024, 3, 4, 12)) == date(2024, 3, 4)

    def test_parse_invalid_date(self):
        with pytest.raises(InvalidDateError):
            parse_iso_date("2024-02-30")

    def test_unknown_timezone(self):
        with pytest.raises(InvalidDateError):
            get_zone("Mars/Olympus_Mons")

    def test_local_datetime_is_utc(self):
        instant = local_datetime(date(2024, 3, 4), "10:00", NEW_YORK)

        assert instant == utc(2024, 3, 4, 15, 0)
        assert instant.tzinfo == timezone.utc

    def test_local_datetime_end_of_day_rolls_over(self):
        instant = local_datetime(date(2024, 3, 4), "24:00", NEW_YORK)

        assert instant == utc(2024, 3, 5, 5, 0)

    def test_round_trip_to_wall_clock(self):
        instant = local_datetime(date(2024, 7, 1), "14:45", NEW_YORK)

        assert instant == utc(2024, 7, 1, 18, 45)
        assert to_local_wall_clock(instant, NEW_YORK) == "14:45"


class TestTimeWindow:
    """Test half-open interval semantics."""

    def test_touching_windows_do_not_overlap(self):
        first = TimeWindow(utc(2024, 3, 4, 10), utc(2024, 3, 4, 11))
        second = TimeWindow(utc(2024, 3, 4, 11), utc(2024, 3, 4, 12))

        assert not first.overlaps(second)
        assert not second.overlaps(first)

    def test_partial_overlap(self):
        first = TimeWindow(utc(2024, 3, 4, 10), utc(2024, 3, 4, 11))
        second = TimeWindow.starting_at(utc(2024, 3, 4, 10, 30), 60)

        assert first.overlaps(second)
        assert second.overlaps(first)

    def test_contained_window_overlaps(self):
        outer = TimeWindow(utc(2024, 3, 4, 9), utc(2024, 3, 4, 17))
        inner = TimeWindow.starting_at(utc(2024, 3, 4, 12), 30)

        assert outer.overlaps(inner)

    def test_contains_is_half_open(self):
        window = TimeWindow(utc(2024, 3, 4, 10), utc(2024, 3, 4, 11))

        assert window.contains(utc(2024, 3, 4, 10))
        assert not window.contains(utc(2024, 3, 4, 11))

    def test_normalizes_to_utc(self):
        start = datetime(2024, 3, 4, 10, 0, tzinfo=NEW_YORK)
        window = TimeWindow.starting_at(start, 30)

        assert window.start == utc(2024, 3, 4, 15, 0)
        assert window.start.tzinfo == timezone.utc

    def test_naive_datetimes_rejected(self):
        with pytest.raises(InvalidInputError):
            TimeWindow(datetime(2024, 3, 4, 10), datetime(2024, 3, 4, 11))

    def test_end_before_start_rejected(self):
        with pytest.raises(InvalidInputError):
            TimeWindow(utc(2024, 3, 4, 11), utc(2024, 3, 4, 10))

    def test_duration_across_spring_forward(self):
        # 2024-03-10 02:00 local does not exist in New York
        window = TimeWindow.from_wall_clock(date(2024, 3, 10), "01:00", "04:00", NEW_YORK)

        assert window.duration == timedelta(hours=2)
