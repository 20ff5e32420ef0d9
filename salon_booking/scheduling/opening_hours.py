from datetime import date, datetime
from typing import Any, List, Mapping, Union

import structlog

from salon_booking.core.exceptions import InvalidDateError
from salon_booking.scheduling.intervals import get_zone, parse_iso_date
from salon_booking.schemas.scheduling import WEEKDAYS, TimeRange, WeeklySchedule

logger = structlog.get_logger(__name__)


def weekday_name(day: Union[date, datetime, str], tz_name: str) -> str:
    """Lowercase weekday name of ``day`` as seen in ``tz_name``.

    Aware datetimes are converted into the branch zone first, so an instant
    late on Sunday in UTC can still be Monday for an Asian branch.
    """
    tz = get_zone(tz_name)
    if isinstance(day, datetime):
        if day.tzinfo is None:
            raise InvalidDateError(
                "Naive datetime cannot be resolved to a branch weekday",
                details={"date": day.isoformat()},
            )
        day = day.astimezone(tz).date()
    else:
        day = parse_iso_date(day)
    return WEEKDAYS[day.weekday()]


def resolve_open_ranges(
    schedule: Union[WeeklySchedule, Mapping[str, Any], None],
    day: Union[date, datetime, str],
    tz_name: str,
) -> List[TimeRange]:
    """Open wall-clock ranges for ``day``, in configured order.

    A missing weekday key or an empty list means closed all day.
    """
    weekday = weekday_name(day, tz_name)
    if schedule is None:
        return []
    if isinstance(schedule, WeeklySchedule):
        ranges = schedule.ranges_for(weekday)
    else:
        ranges = [
            r if isinstance(r, TimeRange) else TimeRange.model_validate(r)
            for r in (schedule.get(weekday) or [])
        ]
    logger.debug("Resolved opening hours", weekday=weekday, ranges=len(ranges))
    return ranges
