"""Free-slot search over a list of busy intervals."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

from .models import AvailableSlot, BusyInterval

AVAILABILITY_TOP_N = 5
WORKDAY_START_HOUR = 9
WORKDAY_END_HOUR = 18
SLOT_STEP = timedelta(minutes=30)


def find_available_slots(
    window_start: datetime,
    window_end: datetime,
    busy: Iterable[BusyInterval],
    duration_minutes: int = 60,
) -> Iterator[AvailableSlot]:
    """Yield candidate slots between `window_start` and `window_end`.

    The cursor starts at 09:00 on `window_start`'s date and advances in
    30-minute steps. A candidate is skipped when it overlaps a busy interval
    or when it starts at 18:00 or later. Only the first day is clamped to
    09:00; later days are scanned from midnight.
    """
    intervals = tuple(busy)
    length = timedelta(minutes=duration_minutes)
    cursor = window_start.replace(hour=WORKDAY_START_HOUR, minute=0, second=0, microsecond=0)
    while cursor < window_end:
        slot_end = cursor + length
        if cursor.hour < WORKDAY_END_HOUR and not _overlaps(cursor, slot_end, intervals):
            yield AvailableSlot(start=cursor, end=slot_end)
        cursor += SLOT_STEP


def top_slots(slots: Iterable[AvailableSlot], limit: int = AVAILABILITY_TOP_N) -> list[AvailableSlot]:
    result: list[AvailableSlot] = []
    for slot in slots:
        if len(result) >= limit:
            break
        result.append(slot)
    return result


def _overlaps(start: datetime, end: datetime, intervals: tuple[BusyInterval, ...]) -> bool:
    return any(start < interval.end and end > interval.start for interval in intervals)
