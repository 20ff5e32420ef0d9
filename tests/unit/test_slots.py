"""Test candidate start-time generation."""

from datetime import date
from zoneinfo import ZoneInfo

import pytest

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.scheduling.slots import SlotSequence, generate_slots
from salon_booking.schemas.scheduling import TimeRange


def time_range(start: str, end: str) -> TimeRange:
    return TimeRange(**{"from": start, "to": end})


class TestGenerateSlots:
    """Test slot generation within open ranges."""

    def test_full_working_day_half_hour_steps(self):
        slots = generate_slots([time_range("09:00", "17:00")], 30, 30)

        assert len(slots) == 16
        assert slots[0] == "09:00"
        assert slots[1] == "09:30"
        assert slots[-1] == "16:30"
        assert "17:00" not in slots

    def test_default_step_is_fifteen_minutes(self):
        slots = generate_slots([time_range("09:00", "10:00")], 30)

        assert slots == ["09:00", "09:15", "09:30"]

    def test_service_longer_than_range(self):
        assert generate_slots([time_range("09:00", "09:45")], 60) == []

    def test_service_exactly_fills_range(self):
        assert generate_slots([time_range("09:00", "10:00")], 60) == ["09:00"]

    def test_ranges_emitted_in_input_order(self):
        slots = generate_slots(
            [time_range("14:00", "15:00"), time_range("09:00", "10:00")], 60
        )

        assert slots == ["14:00", "09:00"]

    def test_overlapping_ranges_are_not_merged(self):
        slots = generate_slots(
            [time_range("09:00", "10:00"), time_range("09:30", "10:30")], 30, 30
        )

        assert slots == ["09:00", "09:30", "09:30", "10:00"]

    def test_range_ending_at_midnight(self):
        slots = generate_slots([time_range("23:00", "24:00")], 30, 30)

        assert slots == ["23:00", "23:30"]

    def test_no_ranges(self):
        assert generate_slots([], 30) == []

    def test_step_not_dividing_range(self):
        slots = generate_slots([time_range("09:00", "10:00")], 20, 25)

        assert slots == ["09:00", "09:25"]

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_rejected(self, duration):
        with pytest.raises(InvalidInputError):
            generate_slots([time_range("09:00", "10:00")], duration)

    @pytest.mark.parametrize("step", [0, -15])
    def test_non_positive_step_rejected(self, step):
        with pytest.raises(InvalidInputError):
            generate_slots([time_range("09:00", "10:00")], 30, step)


class TestSlotSequence:
    """Test the lazy sequence."""

    def test_sequence_is_restartable(self):
        sequence = SlotSequence([time_range("09:00", "10:00")], 30, 30)

        assert list(sequence) == ["09:00", "09:30"]
        assert list(sequence) == ["09:00", "09:30"]

    def test_sequence_is_lazy(self):
        sequence = iter(SlotSequence([time_range("00:00", "24:00")], 1, 1))

        assert next(sequence) == "00:00"
        assert next(sequence) == "00:01"

    def test_windows_carry_service_interval(self):
        sequence = SlotSequence(
            [time_range("09:00", "10:00")],
            45,
            30,
            day=date(2024, 3, 4),
            tz=ZoneInfo("America/New_York"),
        )

        [(label, window)] = list(sequence.windows())

        assert label == "09:00"
        assert window.start.hour == 14
        assert window.duration.total_seconds() == 45 * 60

    def test_steps_in_absolute_time_over_spring_forward(self):
        # Local clocks jump from 02:00 to 03:00 on 2024-03-10 in New York
        sequence = SlotSequence(
            [time_range("01:00", "04:00")],
            60,
            60,
            day=date(2024, 3, 10),
            tz=ZoneInfo("America/New_York"),
        )

        assert list(sequence) == ["01:00", "03:00"]
