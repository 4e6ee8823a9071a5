"""Slot generation and time-of-day helpers."""

from datetime import time
from typing import Union

from backend.app.core.constants import MINUTES_PER_DAY

TimeLike = Union[time, str]


def parse_time_of_day(value: TimeLike) -> time:
    """
    Parse ``HH:MM`` or ``HH:MM:SS`` (or pass a ``time`` through), truncated to the minute.

    Raises ValueError on anything else.
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise ValueError(f"Expected time of day, got {type(value).__name__}")
    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return time(hour, minute)


def format_slot(slot: time) -> str:
    return f"{slot.hour:02d}:{slot.minute:02d}"


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def generate_slots(open_time: time, close_time: time, slot_minutes: int) -> tuple[time, ...]:
    """
    Start times of the bookable slots between open and close.

    Slots start at ``open_time`` and step by ``slot_minutes``; a slot is only
    offered when it ends at or before ``close_time``, so every start is
    strictly before close. Non-positive lengths or ``open >= close`` give no slots.

    When the window is not a whole number of slots the trailing partial slot
    is dropped: 18:30-22:10 in 15-minute slots ends at 21:45, not 22:00.

    18:30-19:15 in 15-minute slots -> 18:30, 18:45, 19:00.
    """
    if slot_minutes <= 0:
        return ()
    open_minutes = _to_minutes(open_time)
    close_minutes = _to_minutes(close_time)
    if open_minutes >= close_minutes:
        return ()

    slots = []
    current = open_minutes
    while current + slot_minutes <= close_minutes and current < MINUTES_PER_DAY:
        slots.append(time(current // 60, current % 60))
        current += slot_minutes
    return tuple(slots)
