from datetime import date, timedelta, timezone, tzinfo
from typing import Iterable, Iterator, List, Optional, Tuple

from salon_booking.core.exceptions import InvalidInputError
from salon_booking.scheduling.intervals import TimeWindow, to_local_wall_clock
from salon_booking.schemas.scheduling import TimeRange

DEFAULT_STEP_MINUTES = 15

# Any fixed date works when the caller does not qualify the ranges
_UNQUALIFIED_DAY = date(2000, 1, 3)


class SlotSequence:
    """Candidate start times that fit a service into the open ranges.

    For each range, in the order given, emits ``from``, ``from + step``, ...
    while ``start + duration <= to``. Overlapping ranges are not merged, so a
    time covered by two ranges is emitted twice.

    The sequence is lazy and can be iterated any number of times. Passing
    ``day`` and ``tz`` anchors the wall-clock ranges to a real date so steps
    are taken in absolute time across DST changes.
    """

    def __init__(
        self,
        ranges: Iterable[TimeRange],
        duration_minutes: int,
        step_minutes: int = DEFAULT_STEP_MINUTES,
        day: Optional[date] = None,
        tz: Optional[tzinfo] = None,
    ):
        if duration_minutes is None or duration_minutes <= 0:
            raise InvalidInputError(
                "Service duration must be positive",
                details={"duration_minutes": duration_minutes},
            )
        if step_minutes is None or step_minutes <= 0:
            raise InvalidInputError(
                "Slot step must be positive", details={"step_minutes": step_minutes}
            )
        self.ranges = list(ranges)
        self.duration_minutes = duration_minutes
        self.step_minutes = step_minutes
        self.day = day or _UNQUALIFIED_DAY
        self.tz = tz or timezone.utc

    def windows(self) -> Iterator[Tuple[str, TimeWindow]]:
        """Yield ``(label, service window)`` for every candidate."""
        duration = timedelta(minutes=self.duration_minutes)
        step = timedelta(minutes=self.step_minutes)
        for open_range in self.ranges:
            opening = TimeWindow.from_wall_clock(
                self.day, open_range.from_, open_range.to, self.tz
            )
            start = opening.start
            while start + duration <= opening.end:
                yield to_local_wall_clock(start, self.tz), TimeWindow(
                    start, start + duration
                )
                start += step

    def __iter__(self) -> Iterator[str]:
        for label, _ in self.windows():
            yield label


def generate_slots(
    ranges: Iterable[TimeRange],
    duration_minutes: int,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> List[str]:
    """Eager wall-clock variant of ``SlotSequence``."""
    return list(SlotSequence(ranges, duration_minutes, step_minutes))
