"""
Timezone-aware time primitives.

Wall-clock values ("HH:mm") are always combined with a calendar date in the
branch timezone and then normalized to UTC. Comparing aware datetimes that
share a tzinfo ignores ``fold`` in Python, so every ``TimeWindow`` is stored
in UTC to keep comparisons correct across DST transitions.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from salon_booking.core.exceptions import InvalidDateError, InvalidInputError

Clock = Callable[[], datetime]

_WALL_CLOCK_RE = re.compile(r"^(\d{2}):(\d{2})$")


def utc_now() -> datetime:
    """Default clock: the current instant in UTC."""
    return datetime.now(timezone.utc)


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise InvalidDateError(
            f"Unknown timezone '{tz_name}'", details={"timezone": tz_name}
        ) from e


def parse_wall_clock(value: str) -> int:
    """Parse "HH:mm" into minutes after midnight. "24:00" means end of day."""
    match = _WALL_CLOCK_RE.match(value or "")
    if not match:
        raise InvalidInputError(
            f"Invalid time '{value}', expected HH:mm", details={"time": value}
        )
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise InvalidInputError(
            f"Invalid time '{value}', expected HH:mm", details={"time": value}
        )
    return hours * 60 + minutes


def format_wall_clock(minutes: int) -> str:
    """Inverse of ``parse_wall_clock`` for 0 <= minutes <= 1440."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_iso_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise InvalidDateError(
            f"Invalid date '{value}', expected YYYY-MM-DD", details={"date": value}
        ) from e


def local_datetime(day: date, wall_clock: str, tz: ZoneInfo) -> datetime:
    """Combine a calendar date and a wall-clock time in ``tz``.

    Returns an aware datetime in UTC.
    """
    minutes = parse_wall_clock(wall_clock)
    if minutes == 24 * 60:
        day, minutes = day + timedelta(days=1), 0
    local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)
    return local.astimezone(timezone.utc)


def to_local_wall_clock(instant: datetime, tz: ZoneInfo) -> str:
    return instant.astimezone(tz).strftime("%H:%M")


def shift_wall_clock(wall_clock: str, delta_minutes: int) -> str:
    """Move a wall-clock value within one day, clamped to 00:00..24:00."""
    minutes = parse_wall_clock(wall_clock) + delta_minutes
    return format_wall_clock(min(max(minutes, 0), 24 * 60))


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start, end)`` between two UTC instants."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidInputError("TimeWindow requires timezone-aware datetimes")
        object.__setattr__(self, "start", self.start.astimezone(timezone.utc))
        object.__setattr__(self, "end", self.end.astimezone(timezone.utc))
        if self.end < self.start:
            raise InvalidInputError(
                "TimeWindow end precedes start",
                details={"start": self.start.isoformat(), "end": self.end.isoformat()},
            )

    @classmethod
    def starting_at(cls, start: datetime, minutes: int) -> "TimeWindow":
        start = start.astimezone(timezone.utc)
        return cls(start, start + timedelta(minutes=minutes))

    @classmethod
    def from_wall_clock(
        cls, day: date, from_: str, to: str, tz: ZoneInfo
    ) -> "TimeWindow":
        return cls(local_datetime(day, from_, tz), local_datetime(day, to, tz))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        """Non-empty intersection. Touching endpoints do not overlap."""
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end
