from datetime import date, tzinfo
from typing import Iterable, List, Sequence, Union

import structlog

from salon_booking.scheduling.intervals import TimeWindow, local_datetime
from salon_booking.schemas.scheduling import BookedInterval, TimeRange

logger = structlog.get_logger(__name__)


def booked_windows(
    booked: Iterable[Union[BookedInterval, TimeRange]], day: date, tz: tzinfo
) -> List[TimeWindow]:
    """Absolute windows for the bookings that fall on ``day``.

    ``BookedInterval`` values carry their own date and are skipped when it
    differs from ``day``; bare ``TimeRange`` values are taken to be on ``day``.
    """
    windows = []
    for interval in booked:
        if isinstance(interval, BookedInterval) and interval.date != day:
            continue
        windows.append(TimeWindow.from_wall_clock(day, interval.from_, interval.to, tz))
    return windows


def conflicts_with(window: TimeWindow, taken: Sequence[TimeWindow]) -> bool:
    return any(window.overlaps(other) for other in taken)


def filter_conflicts(
    candidates: Iterable[str],
    duration_minutes: int,
    booked: Iterable[Union[BookedInterval, TimeRange]],
    day: date,
    tz: tzinfo,
) -> List[str]:
    """Keep the candidates whose ``[start, start + duration)`` is free.

    Order is preserved. Touching an existing booking at either end is not a
    conflict.
    """
    taken = booked_windows(booked, day, tz)
    accepted = []
    for candidate in candidates:
        window = TimeWindow.starting_at(
            local_datetime(day, candidate, tz), duration_minutes
        )
        if not conflicts_with(window, taken):
            accepted.append(candidate)

    logger.debug(
        "Filtered slot conflicts",
        date=day.isoformat(),
        bookings=len(taken),
        accepted=len(accepted),
    )
    return accepted
