from typing import Dict, Any, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.scheduling.intervals import parse_wall_clock
from salon_booking.schemas.scheduling import WEEKDAYS


def validate_timezone_name(tz_name: str) -> bool:
    """Validate IANA timezone name."""
    if not tz_name:
        return False

    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True

def validate_wall_clock(value: str) -> bool:
    """Validate HH:mm time format (24:00 allowed as end of day)."""
    if not isinstance(value, str):
        return False

    try:
        parse_wall_clock(value)
    except InvalidInputError:
        return False
    return True

def validate_weekly_schedule(schedule: Dict[str, Any]) -> List[str]:
    """Validate weekly opening hours configuration."""
    errors = []

    if not schedule:
        return errors

    for key in schedule:
        if key not in WEEKDAYS:
            errors.append(f"Unknown weekday '{key}', expected one of: {', '.join(WEEKDAYS)}")

    for day in WEEKDAYS:
        ranges = schedule.get(day) or []
        if not isinstance(ranges, list):
            errors.append(f"{day} must be a list of time ranges")
            continue

        for index, time_range in enumerate(ranges):
            if not isinstance(time_range, dict):
                errors.append(f"{day}[{index}] must be an object with 'from' and 'to'")
                continue

            start, end = time_range.get('from'), time_range.get('to')
            if not validate_wall_clock(start) or not validate_wall_clock(end):
                errors.append(f"{day}[{index}] times must use HH:mm format")
                continue

            if parse_wall_clock(start) >= parse_wall_clock(end):
                errors.append(f"{day}[{index}] 'from' must be before 'to'")

    return errors
