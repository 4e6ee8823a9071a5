# backend/app/services/demand.py
"""
Demand aggregation: committed quantity per slot for one (vendor, day).

A slot without a stored row has zero demand.
"""

from dataclasses import dataclass, field
from datetime import date, time

from backend.app.core.logging import get_logger
from backend.app.models.slot_demand import SlotDemand
from backend.app.services.slots import format_slot, parse_time_of_day
from backend.app.services.store import SlotStore

logger = get_logger(__name__)


@dataclass
class DayDemand:
    day: date
    max_per_slot: int
    used: dict[time, int] = field(default_factory=dict)
    slots: tuple[time, ...] = ()

    def used_for(self, slot: time) -> int:
        return self.used.get(slot, 0)

    def remaining(self, slot: time) -> int:
        return max(0, self.max_per_slot - self.used_for(slot))

    @property
    def total(self) -> int:
        return sum(self.used.values())

    @property
    def orphaned(self) -> list[time]:
        """Slots with stored demand that the day's hours no longer offer."""
        offered = set(self.slots)
        return sorted(slot for slot in self.used if slot not in offered)


class DemandAggregator:
    def __init__(self, store: SlotStore):
        self.store = store

    async def load(
        self,
        vendor_id: str,
        day: date,
        max_per_slot: int,
        slots: tuple[time, ...] = (),
        quiet: bool = False,
    ) -> DayDemand:
        """
        Read every demand row for the day in one range query.

        ``quiet`` logs orphaned demand at debug level, for repeated background refreshes.
        """
        rows = await self.store.list_by_prefix(SlotDemand, (vendor_id, day))
        demand = DayDemand(
            day=day,
            max_per_slot=max_per_slot,
            used={parse_time_of_day(row.slot_time): row.qty for row in rows},
            slots=slots,
        )
        orphaned = demand.orphaned
        if orphaned:
            log = logger.debug if quiet else logger.warning
            log(
                "Demand recorded for slots outside the day's hours",
                vendor_id=vendor_id,
                day=day.isoformat(),
                slots=[format_slot(s) for s in orphaned],
            )
        return demand

    async def used_for(self, vendor_id: str, day: date, slot: time) -> int:
        return await self.store.current_qty((vendor_id, day, slot))
