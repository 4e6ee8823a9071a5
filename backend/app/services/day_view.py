# backend/app/services/day_view.py
"""Everything needed to show one day: capacity, effective hours, slots and their demand."""

from dataclasses import dataclass
from datetime import date

from backend.app.services.demand import DayDemand, DemandAggregator
from backend.app.services.hours import EffectiveHours, HoursResolver
from backend.app.services.slots import format_slot
from backend.app.services.store import SlotStore
from backend.app.services.vendor_settings import VendorSettingsService


@dataclass
class DaySnapshot:
    vendor_id: str
    day: date
    max_per_slot: int
    hours: EffectiveHours
    demand: DayDemand

    def as_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "max_per_slot": self.max_per_slot,
            "hours": self.hours.as_dict(),
            "slots": [
                {
                    "slot": format_slot(slot),
                    "used": self.demand.used_for(slot),
                    "remaining": self.demand.remaining(slot),
                }
                for slot in self.hours.slots
            ],
            "total": self.demand.total,
        }


async def load_day_snapshot(store: SlotStore, vendor_id: str, day: date, quiet: bool = False) -> DaySnapshot:
    """Full refresh of one day: settings (created on first access), hours, then demand."""
    settings = await VendorSettingsService(store).get_or_create(vendor_id)
    hours = await HoursResolver(store).resolve(vendor_id, day)
    demand = await DemandAggregator(store).load(vendor_id, day, settings.max_per_slot, hours.slots, quiet=quiet)
    return DaySnapshot(
        vendor_id=vendor_id,
        day=day,
        max_per_slot=settings.max_per_slot,
        hours=hours,
        demand=demand,
    )
