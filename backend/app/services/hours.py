# backend/app/services/hours.py
"""
Effective opening hours for a vendor on a given date.

Resolution order, first match wins:
  1. a DateOverride for exactly that date ("save only this day")
  2. the StandingRule with the latest start_day on or before the date
     ("apply from this day onward")
  3. the configured default hours
"""

from dataclasses import dataclass, field, replace
from datetime import date, time
from typing import Any, Optional

from backend.app.core.constants import MINUTES_PER_DAY, SOURCE_DEFAULT, SOURCE_OVERRIDE, SOURCE_RULE
from backend.app.core.exceptions import ServiceError
from backend.app.core.logging import get_logger
from backend.app.core.settings import get_settings
from backend.app.models.opening_hours import DateOverride, StandingRule
from backend.app.services.slots import TimeLike, format_slot, generate_slots, parse_time_of_day
from backend.app.services.store import SlotStore

logger = get_logger(__name__)


class InvalidConfigurationError(ServiceError):
    def __init__(self, message: str):
        super().__init__(message, 422)


@dataclass(frozen=True)
class EffectiveHours:
    is_closed: bool
    open_time: time
    close_time: time
    slot_minutes: int
    source: str = field(default=SOURCE_DEFAULT, compare=False)

    @property
    def slots(self) -> tuple[time, ...]:
        """Bookable slot starts; a closed day has none."""
        if self.is_closed:
            return ()
        return generate_slots(self.open_time, self.close_time, self.slot_minutes)

    @classmethod
    def from_row(cls, row: Any, source: str) -> "EffectiveHours":
        return cls(
            is_closed=row.is_closed,
            open_time=parse_time_of_day(row.open_time),
            close_time=parse_time_of_day(row.close_time),
            slot_minutes=row.slot_minutes,
            source=source,
        )

    def as_dict(self) -> dict:
        return {
            "is_closed": self.is_closed,
            "open_time": format_slot(self.open_time),
            "close_time": format_slot(self.close_time),
            "slot_minutes": self.slot_minutes,
            "source": self.source,
        }


def default_hours() -> EffectiveHours:
    settings = get_settings()
    return EffectiveHours(
        is_closed=False,
        open_time=parse_time_of_day(settings.DEFAULT_OPEN_TIME),
        close_time=parse_time_of_day(settings.DEFAULT_CLOSE_TIME),
        slot_minutes=settings.DEFAULT_SLOT_MINUTES,
        source=SOURCE_DEFAULT,
    )


def validate_hours(
    is_closed: bool,
    open_time: TimeLike,
    close_time: TimeLike,
    slot_minutes: int,
) -> EffectiveHours:
    """Check vendor input before it is stored. Raises InvalidConfigurationError."""
    if isinstance(slot_minutes, bool) or not isinstance(slot_minutes, int):
        raise InvalidConfigurationError("Slot length must be a whole number of minutes")
    if slot_minutes <= 0:
        raise InvalidConfigurationError("Slot length must be greater than 0 minutes")
    if slot_minutes > MINUTES_PER_DAY:
        raise InvalidConfigurationError(f"Slot length must be at most {MINUTES_PER_DAY} minutes")
    try:
        parsed_open = parse_time_of_day(open_time)
    except ValueError:
        raise InvalidConfigurationError(f"Invalid opening time: {open_time!r}")
    try:
        parsed_close = parse_time_of_day(close_time)
    except ValueError:
        raise InvalidConfigurationError(f"Invalid closing time: {close_time!r}")
    return EffectiveHours(
        is_closed=bool(is_closed),
        open_time=parsed_open,
        close_time=parsed_close,
        slot_minutes=slot_minutes,
    )


class HoursResolver:
    """Reads and saves opening hours. ``resolve`` never writes."""

    def __init__(self, store: SlotStore, defaults: Optional[EffectiveHours] = None):
        self.store = store
        self.defaults = defaults or default_hours()

    async def resolve(self, vendor_id: str, day: date) -> EffectiveHours:
        override = await self.store.get(DateOverride, (vendor_id, day))
        if override is not None:
            return EffectiveHours.from_row(override, SOURCE_OVERRIDE)

        rule = await self.store.most_recent_rule(vendor_id, day)
        if rule is not None:
            return EffectiveHours.from_row(rule, SOURCE_RULE)

        return self.defaults

    async def save_day_override(
        self,
        vendor_id: str,
        day: date,
        *,
        is_closed: bool,
        open_time: TimeLike,
        close_time: TimeLike,
        slot_minutes: int,
    ) -> EffectiveHours:
        """Hours for this date only."""
        hours = replace(validate_hours(is_closed, open_time, close_time, slot_minutes), source=SOURCE_OVERRIDE)
        await self.store.upsert(DateOverride, (vendor_id, day), self._row_values(hours))
        await self.store.commit()
        logger.info("Saved hours for one day", vendor_id=vendor_id, day=day.isoformat(), **hours.as_dict())
        return hours

    async def save_standing_rule(
        self,
        vendor_id: str,
        start_day: date,
        *,
        is_closed: bool,
        open_time: TimeLike,
        close_time: TimeLike,
        slot_minutes: int,
    ) -> EffectiveHours:
        """
        Hours from ``start_day`` onward.

        Later rules and single-day overrides still win over this one.
        """
        hours = replace(validate_hours(is_closed, open_time, close_time, slot_minutes), source=SOURCE_RULE)
        await self.store.upsert(StandingRule, (vendor_id, start_day), self._row_values(hours))
        await self.store.commit()
        logger.info(
            "Saved standing hours",
            vendor_id=vendor_id,
            start_day=start_day.isoformat(),
            **hours.as_dict(),
        )
        return hours

    @staticmethod
    def _row_values(hours: EffectiveHours) -> dict:
        return {
            "is_closed": hours.is_closed,
            "open_time": hours.open_time,
            "close_time": hours.close_time,
            "slot_minutes": hours.slot_minutes,
        }
