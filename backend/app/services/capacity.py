# backend/app/services/capacity.py
"""
Capacity enforcement for slot demand.

Every quantity change goes through ``CapacityEnforcer.apply_delta``: the slot
must be one the day's hours offer, the result is clamped at zero, and a result
above the vendor's ``max_per_slot`` is rejected without writing anything.
A zero result deletes the row instead of storing it.

In ``advisory`` mode the ceiling is checked against a fresh read and then
written; two devices writing the same slot at the same moment can both pass
the check. ``atomic`` mode makes the write conditional on the value that was
checked, so the ceiling holds across devices.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from backend.app.core.exceptions import ServiceError
from backend.app.core.logging import get_logger
from backend.app.core.metrics import day_resets_total, slot_demand_changes_total
from backend.app.core.settings import get_settings
from backend.app.models.slot_demand import SlotDemand
from backend.app.services.hours import HoursResolver
from backend.app.services.slots import TimeLike, format_slot, parse_time_of_day
from backend.app.services.store import SlotStore
from backend.app.services.vendor_settings import VendorSettingsService

logger = get_logger(__name__)


class CapacityExceededError(ServiceError):
    def __init__(self, slot: time, current: int, requested: int, max_per_slot: int):
        self.slot = slot
        self.current = current
        self.requested = requested
        self.max_per_slot = max_per_slot
        super().__init__(
            f"Slot {format_slot(slot)} is full: {requested} requested, capacity {max_per_slot}",
            409,
        )


class InvalidSlotError(ServiceError):
    def __init__(self, slot: object, day: Optional[date] = None):
        label = format_slot(slot) if isinstance(slot, time) else repr(slot)
        where = f" on {day.isoformat()}" if day else ""
        super().__init__(f"{label} is not a bookable slot{where}", 422)


@dataclass(frozen=True)
class DeltaResult:
    slot: time
    previous: int
    qty: int
    max_per_slot: int

    @property
    def remaining(self) -> int:
        return max(0, self.max_per_slot - self.qty)


def coerce_slot(slot: TimeLike, day: Optional[date] = None) -> time:
    try:
        return parse_time_of_day(slot)
    except ValueError:
        raise InvalidSlotError(slot, day)


class CapacityEnforcer:
    def __init__(self, store: SlotStore, mode: Optional[str] = None):
        self.store = store
        self.mode = mode or get_settings().CAPACITY_MODE

    async def apply_delta(self, vendor_id: str, day: date, slot: TimeLike, delta: int) -> DeltaResult:
        """
        Add ``delta`` (may be negative) to the slot's committed quantity.

        Raises InvalidSlotError when the slot is not offered that day and
        CapacityExceededError when the result would pass max_per_slot. Both
        leave the store untouched; the caller should not retry automatically.
        """
        slot_time = coerce_slot(slot, day)
        hours = await HoursResolver(self.store).resolve(vendor_id, day)
        if slot_time not in hours.slots:
            slot_demand_changes_total.labels(result="invalid_slot").inc()
            raise InvalidSlotError(slot_time, day)

        settings = await VendorSettingsService(self.store).get_or_create(vendor_id)
        max_per_slot = settings.max_per_slot
        key = (vendor_id, day, slot_time)

        if delta == 0:
            current = await self.store.current_qty(key)
            return DeltaResult(slot_time, current, current, max_per_slot)

        if self.mode == "atomic":
            current, committed = await self.store.apply_bounded_delta(key, delta, max_per_slot)
            if committed is None:
                await self.store.rollback()
                self._reject(vendor_id, day, slot_time, current, delta, max_per_slot)
        else:
            current = await self.store.current_qty(key)
            committed = max(0, current + delta)
            if committed > max_per_slot:
                self._reject(vendor_id, day, slot_time, current, delta, max_per_slot)
            if committed == 0:
                await self.store.delete(SlotDemand, key)
            else:
                await self.store.upsert(SlotDemand, key, {"qty": committed})
        await self.store.commit()

        slot_demand_changes_total.labels(result="cleared" if committed == 0 else "committed").inc()
        logger.info(
            "Slot demand updated",
            vendor_id=vendor_id,
            day=day.isoformat(),
            slot=format_slot(slot_time),
            delta=delta,
            previous=current,
            qty=committed,
            mode=self.mode,
        )
        return DeltaResult(slot_time, current, committed, max_per_slot)

    def _reject(self, vendor_id: str, day: date, slot: time, current: int, delta: int, max_per_slot: int):
        slot_demand_changes_total.labels(result="rejected").inc()
        logger.warning(
            "Slot capacity exceeded",
            vendor_id=vendor_id,
            day=day.isoformat(),
            slot=format_slot(slot),
            current=current,
            delta=delta,
            max_per_slot=max_per_slot,
        )
        raise CapacityExceededError(slot, current, current + delta, max_per_slot)

    async def reset_day(self, vendor_id: str, day: date) -> int:
        """Delete all demand of one day for the vendor. Returns the number of rows removed."""
        deleted = await self.store.delete_by_prefix(SlotDemand, (vendor_id, day))
        await self.store.commit()
        day_resets_total.inc()
        logger.info("Day demand reset", vendor_id=vendor_id, day=day.isoformat(), deleted=deleted)
        return deleted
