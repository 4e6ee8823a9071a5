# backend/app/services/sync.py
"""
Keeps one device's view of a day in step with the store.

``DaySync`` owns the day a vendor is looking at. Opening a day (or moving to
another one) does a full refresh while ``state`` is LOADING; after that a
background task refreshes quietly every ``interval`` seconds and overwrites
the local view with what the store holds.

Quantity changes are shown immediately, tagged as unconfirmed, committed
through the CapacityEnforcer and reconciled by the next successful refresh.
A refresh that finishes after the vendor moved to another day (or signed in
as someone else) is thrown away.
"""

import asyncio
import enum
from datetime import date, time, timedelta
from typing import Any, Callable, Optional

from backend.app.core.exceptions import ServiceError
from backend.app.core.logging import bind_vendor_context, clear_vendor_context, get_logger
from backend.app.core.settings import get_settings
from backend.app.services.capacity import CapacityEnforcer, DeltaResult, coerce_slot
from backend.app.services.day_view import DaySnapshot, load_day_snapshot
from backend.app.services.hours import EffectiveHours, HoursResolver
from backend.app.services.slots import TimeLike, format_slot
from backend.app.services.store import SlotStore
from backend.app.services.vendor_settings import VendorSettingsService

logger = get_logger(__name__)

# Called with no arguments, returns an async context manager yielding an AsyncSession
SessionFactory = Callable[[], Any]


class SyncState(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    STOPPED = "stopped"


class DaySync:
    def __init__(
        self,
        session_factory: SessionFactory,
        vendor_id: Optional[str],
        day: date,
        interval: Optional[float] = None,
        capacity_mode: Optional[str] = None,
    ):
        settings = get_settings()
        self._session_factory = session_factory
        self._vendor_id = vendor_id
        self._day = day
        self.interval = interval if interval is not None else settings.SYNC_INTERVAL_SECONDS
        self.capacity_mode = capacity_mode or settings.CAPACITY_MODE
        self.state = SyncState.IDLE
        self.snapshot: Optional[DaySnapshot] = None
        self.unconfirmed: dict[time, int] = {}
        self.last_error: Optional[ServiceError] = None
        # Bumped whenever the viewed day or vendor changes; older refreshes are stale
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def day(self) -> date:
        return self._day

    @property
    def vendor_id(self) -> Optional[str]:
        return self._vendor_id

    # --- local view ---

    def qty_for(self, slot: TimeLike) -> int:
        slot_time = coerce_slot(slot, self._day)
        if slot_time in self.unconfirmed:
            return self.unconfirmed[slot_time]
        if self.snapshot is None:
            return 0
        return self.snapshot.demand.used_for(slot_time)

    def remaining(self, slot: TimeLike) -> int:
        if self.snapshot is None:
            return 0
        return max(0, self.snapshot.max_per_slot - self.qty_for(slot))

    def slots(self) -> list[dict]:
        if self.snapshot is None:
            return []
        return [
            {
                "slot": format_slot(slot),
                "used": self.qty_for(slot),
                "remaining": self.remaining(slot),
                "unconfirmed": slot in self.unconfirmed,
            }
            for slot in self.snapshot.hours.slots
        ]

    # --- navigation & identity ---

    def _invalidate(self) -> None:
        self._generation += 1
        # A pending loading refresh is now stale and will not reset the state itself
        if self.state is SyncState.LOADING:
            self.state = SyncState.IDLE
        self.snapshot = None
        self.unconfirmed.clear()
        self.last_error = None

    async def open(self, day: Optional[date] = None) -> bool:
        """Show ``day`` (default: the current one) with a loading refresh."""
        if day is not None and day != self._day:
            self._day = day
            self._invalidate()
        return await self.refresh(show_loading=True)

    async def shift_day(self, days: int) -> bool:
        return await self.open(self._day + timedelta(days=days))

    async def set_vendor(self, vendor_id: Optional[str]) -> bool:
        """Signed-in identity changed: drop everything local and reload for the new vendor."""
        if vendor_id == self._vendor_id:
            return False
        self._vendor_id = vendor_id
        self._invalidate()
        logger.info("Day view identity changed", vendor_id=vendor_id)
        if vendor_id is None:
            return False
        return await self.refresh(show_loading=True)

    # --- refresh ---

    async def refresh(self, *, show_loading: bool = False) -> bool:
        """
        Fetch settings, hours and demand for the active day.

        Returns False when there is no vendor or the result went stale before
        it arrived. On failure the previous view is kept, the error is stored
        in ``last_error`` and re-raised.
        """
        vendor_id = self._vendor_id
        if vendor_id is None:
            return False
        day = self._day
        generation = self._generation
        if show_loading:
            self.state = SyncState.LOADING
        try:
            async with self._session_factory() as session:
                snapshot = await load_day_snapshot(SlotStore(session), vendor_id, day, quiet=not show_loading)
        except ServiceError as e:
            if generation == self._generation:
                self.last_error = e
            logger.error("Day refresh failed", vendor_id=vendor_id, day=day.isoformat(), error=e.message)
            raise
        finally:
            if show_loading and generation == self._generation:
                self.state = SyncState.IDLE

        if generation != self._generation:
            logger.debug("Discarding stale day refresh", vendor_id=vendor_id, day=day.isoformat())
            return False
        self.snapshot = snapshot
        self.unconfirmed.clear()
        self.last_error = None
        return True

    # --- mutations ---

    async def change_qty(self, slot: TimeLike, delta: int) -> DeltaResult:
        """Show the change at once, commit it, then reconcile with a refresh."""
        vendor_id = self._require_vendor()
        day = self._day
        generation = self._generation
        slot_time = coerce_slot(slot, day)
        self.unconfirmed[slot_time] = max(0, self.qty_for(slot_time) + delta)
        try:
            async with self._session_factory() as session:
                enforcer = CapacityEnforcer(SlotStore(session), self.capacity_mode)
                result = await enforcer.apply_delta(vendor_id, day, slot_time, delta)
        except ServiceError:
            if generation == self._generation:
                self.unconfirmed.pop(slot_time, None)
            raise
        if generation == self._generation:
            self.unconfirmed[slot_time] = result.qty
        await self._reconcile()
        return result

    async def reset_day(self) -> int:
        vendor_id = self._require_vendor()
        async with self._session_factory() as session:
            deleted = await CapacityEnforcer(SlotStore(session), self.capacity_mode).reset_day(vendor_id, self._day)
        await self._reconcile()
        return deleted

    async def save_max_per_slot(self, max_per_slot: int) -> int:
        vendor_id = self._require_vendor()
        async with self._session_factory() as session:
            settings = await VendorSettingsService(SlotStore(session)).save_max_per_slot(vendor_id, max_per_slot)
        await self._reconcile()
        return settings.max_per_slot

    async def save_hours(
        self,
        *,
        is_closed: bool,
        open_time: TimeLike,
        close_time: TimeLike,
        slot_minutes: int,
        onward: bool = False,
    ) -> EffectiveHours:
        """Save hours for the active day only, or (``onward``) from it on."""
        vendor_id = self._require_vendor()
        async with self._session_factory() as session:
            resolver = HoursResolver(SlotStore(session))
            save = resolver.save_standing_rule if onward else resolver.save_day_override
            hours = await save(
                vendor_id,
                self._day,
                is_closed=is_closed,
                open_time=open_time,
                close_time=close_time,
                slot_minutes=slot_minutes,
            )
        await self._reconcile()
        return hours

    def _require_vendor(self) -> str:
        if self._vendor_id is None:
            raise ServiceError("Not signed in", 401)
        return self._vendor_id

    async def _reconcile(self) -> None:
        # The write is already committed; a failed refresh only delays reconciliation
        try:
            await self.refresh()
        except ServiceError:
            logger.warning("Reconciling refresh failed, next interval will retry", day=self._day.isoformat())

    # --- background loop ---

    def start(self) -> None:
        """Start the periodic refresh task (idempotent)."""
        if self._task is None or self._task.done():
            if self.state is SyncState.STOPPED:
                self.state = SyncState.IDLE
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.state = SyncState.STOPPED

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.state is not SyncState.IDLE:
                continue
            bind_vendor_context(self._vendor_id, self._day)
            try:
                await self.refresh()
            except ServiceError:
                # Logged by refresh() and kept in last_error; the view stays as it was
                continue
            except Exception as e:
                logger.error("Day refresh crashed", day=self._day.isoformat(), error=str(e))
            finally:
                clear_vendor_context()
