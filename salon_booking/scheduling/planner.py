from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Union
from zoneinfo import ZoneInfo

import structlog

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.scheduling.conflicts import booked_windows, conflicts_with
from salon_booking.scheduling.intervals import get_zone
from salon_booking.scheduling.opening_hours import resolve_open_ranges
from salon_booking.scheduling.slots import DEFAULT_STEP_MINUTES, SlotSequence
from salon_booking.schemas.scheduling import (
    AvailabilityDay,
    BookedInterval,
    TimeRange,
    WeeklySchedule,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BookingWindow:
    """Eligible booking period, ``start`` being the lead-time floor."""

    start: datetime
    end: datetime
    tz: ZoneInfo

    def days(self) -> Iterator[date]:
        """Calendar days whose local midnight falls before ``end``.

        The first day is the local date of ``start``; the last day is included
        in full even when ``end`` lands part-way through it. A window that
        starts exactly at local midnight ends at a later midnight, which is
        not itself included.
        """
        day = self.start.astimezone(self.tz).date()
        while datetime.combine(day, time.min, tzinfo=self.tz) < self.end:
            yield day
            day += timedelta(days=1)


def booking_window(
    now: datetime, lead_time_hours: float, booking_window_days: int, tz_name: str
) -> BookingWindow:
    if now.tzinfo is None:
        raise InvalidInputError("Clock must return a timezone-aware datetime")
    if lead_time_hours is None or lead_time_hours < 0:
        raise InvalidInputError(
            "Lead time cannot be negative", details={"lead_time": lead_time_hours}
        )
    if booking_window_days is None or booking_window_days < 0:
        raise InvalidInputError(
            "Booking window cannot be negative",
            details={"booking_window": booking_window_days},
        )

    tz = get_zone(tz_name)
    # Hours are absolute; days are calendar days in the branch zone
    start = now.astimezone(timezone.utc) + timedelta(hours=lead_time_hours)
    end_local = start.astimezone(tz) + timedelta(days=booking_window_days)
    return BookingWindow(start=start, end=end_local.astimezone(timezone.utc), tz=tz)


def _group_by_date(
    booked: Iterable[BookedInterval],
) -> Dict[date, List[BookedInterval]]:
    grouped = defaultdict(list)
    for interval in booked:
        grouped[interval.date].append(interval)
    return grouped


def plan_availability(
    schedule: Union[WeeklySchedule, Mapping[str, Any], None],
    booked: Iterable[BookedInterval],
    duration_minutes: int,
    lead_time_hours: float,
    booking_window_days: int,
    tz_name: str,
    now: datetime,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> List[AvailabilityDay]:
    """Availability calendar for one staff member and one service.

    Every day of the booking window is present, possibly with no slots. Slots
    that start before the lead-time floor are dropped, as are slots whose
    service interval overlaps a booked (buffered) interval on that date.
    Slots are returned in chronological order and a start time produced by
    overlapping ranges is emitted once. On a DST fall-back day the second pass
    through the repeated hour is skipped, since a wall-clock label resolves to
    its first occurrence.
    """
    window = booking_window(now, lead_time_hours, booking_window_days, tz_name)
    bookings_by_date = _group_by_date(booked)

    availability = []
    for day in window.days():
        ranges: List[TimeRange] = sorted(
            resolve_open_ranges(schedule, day, tz_name),
            key=lambda r: r.start_minutes,
        )
        taken = booked_windows(bookings_by_date.get(day, []), day, window.tz)

        found = {}
        sequence = SlotSequence(
            ranges, duration_minutes, step_minutes, day=day, tz=window.tz
        )
        for label, service_window in sequence.windows():
            if service_window.start < window.start or service_window.start in found:
                continue
            if service_window.start.astimezone(window.tz).fold:
                continue
            if conflicts_with(service_window, taken):
                continue
            found[service_window.start] = label

        slots = [found[start] for start in sorted(found)]
        availability.append(AvailabilityDay(date=day.isoformat(), slots=slots))

    logger.debug(
        "Planned availability",
        window_start=window.start.isoformat(),
        window_end=window.end.isoformat(),
        days=len(availability),
    )
    return availability
