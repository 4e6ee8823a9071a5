"""
Tests for the per-device day view (DaySync).

Tests cover:
- LOADING while a day is opened, IDLE afterwards
- stale refreshes discarded after moving to another day
- optimistic quantity changes and their reconciliation
- failed refreshes keep the previous view
- identity changes, navigation and the background loop
"""
import asyncio
import pytest
from contextlib import asynccontextmanager
from datetime import date, time

from backend.app.core.exceptions import ServiceError
from backend.app.services.capacity import CapacityExceededError
from backend.app.services.store import StoreFailure
from backend.app.services.sync import DaySync, SyncState
from backend.tests.conftest import VENDOR_ID, OTHER_VENDOR_ID, add_demand, add_settings

DAY = date(2024, 6, 14)
SLOT = time(18, 30)


class GatedSessionFactory:
    """Session factory that can hold new sessions until ``release()``."""

    def __init__(self, factory):
        self.factory = factory
        self.gate = None

    def close(self):
        self.gate = asyncio.Event()
        return self.gate

    def release(self):
        gate, self.gate = self.gate, None
        if gate is not None:
            gate.set()

    @asynccontextmanager
    async def __call__(self):
        gate = self.gate
        if gate is not None:
            await gate.wait()
        async with self.factory() as session:
            yield session


@pytest.fixture
def gated_factory(session_factory):
    return GatedSessionFactory(session_factory)


async def _let_tasks_run():
    for _ in range(3):
        await asyncio.sleep(0)


# ============================================
# OPEN / REFRESH
# ============================================

class TestOpenAndRefresh:

    @pytest.mark.asyncio
    async def test_open_loads_snapshot(self, session_factory, test_session):
        await add_demand(test_session, DAY, SLOT, 4)
        sync = DaySync(session_factory, VENDOR_ID, DAY)

        assert await sync.open() is True
        assert sync.state is SyncState.IDLE
        assert sync.snapshot.max_per_slot == 10
        assert sync.qty_for(SLOT) == 4
        assert sync.remaining("18:30") == 6
        assert len(sync.slots()) == 14
        assert sync.slots()[0] == {"slot": "18:30", "used": 4, "remaining": 6, "unconfirmed": False}

    @pytest.mark.asyncio
    async def test_loading_state_while_opening(self, gated_factory):
        sync = DaySync(gated_factory, VENDOR_ID, DAY)
        gated_factory.close()

        task = asyncio.create_task(sync.open())
        await _let_tasks_run()
        assert sync.state is SyncState.LOADING

        gated_factory.release()
        assert await task is True
        assert sync.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_stale_refresh_is_discarded(self, gated_factory, test_session):
        next_day = date(2024, 6, 15)
        await add_demand(test_session, DAY, SLOT, 1)
        await add_demand(test_session, next_day, SLOT, 8)
        sync = DaySync(gated_factory, VENDOR_ID, DAY)
        await sync.open()

        gate = gated_factory.close()
        stale = asyncio.create_task(sync.refresh())
        await _let_tasks_run()
        gated_factory.gate = None

        assert await sync.shift_day(1) is True
        gate.set()

        assert await stale is False
        assert sync.day == next_day
        assert sync.qty_for(SLOT) == 8
        assert sync.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_view(self, session_factory, test_session, monkeypatch):
        await add_demand(test_session, DAY, SLOT, 3)
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()
        previous = sync.snapshot

        async def failing_load(store, vendor_id, day, quiet=False):
            raise StoreFailure("refresh")

        monkeypatch.setattr("backend.app.services.sync.load_day_snapshot", failing_load)
        with pytest.raises(StoreFailure):
            await sync.refresh(show_loading=True)

        assert sync.snapshot is previous
        assert sync.qty_for(SLOT) == 3
        assert isinstance(sync.last_error, StoreFailure)
        assert sync.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_no_vendor_means_no_refresh(self, session_factory):
        sync = DaySync(session_factory, None, DAY)
        assert await sync.refresh() is False
        assert sync.snapshot is None
        assert sync.slots() == []


# ============================================
# MUTATIONS
# ============================================

class TestMutations:

    @pytest.mark.asyncio
    async def test_change_is_shown_before_commit(self, gated_factory, test_session):
        await add_demand(test_session, DAY, SLOT, 2)
        sync = DaySync(gated_factory, VENDOR_ID, DAY)
        await sync.open()

        gated_factory.close()
        task = asyncio.create_task(sync.change_qty("18:30", 3))
        await _let_tasks_run()
        assert sync.qty_for(SLOT) == 5
        assert sync.slots()[0]["unconfirmed"] is True

        gated_factory.release()
        result = await task
        assert result.qty == 5
        assert sync.unconfirmed == {}
        assert sync.qty_for(SLOT) == 5

    @pytest.mark.asyncio
    async def test_rejected_change_is_rolled_back_locally(self, session_factory, test_session):
        await add_settings(test_session, max_per_slot=2)
        await add_demand(test_session, DAY, SLOT, 2)
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()

        with pytest.raises(CapacityExceededError):
            await sync.change_qty(SLOT, 1)

        assert sync.unconfirmed == {}
        assert sync.qty_for(SLOT) == 2

    @pytest.mark.asyncio
    async def test_atomic_mode_is_passed_to_enforcer(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY, capacity_mode="atomic")
        await sync.open()
        result = await sync.change_qty(SLOT, 4)
        assert result.qty == 4
        assert sync.qty_for(SLOT) == 4

    @pytest.mark.asyncio
    async def test_reset_day(self, session_factory, test_session):
        await add_demand(test_session, DAY, SLOT, 2)
        await add_demand(test_session, DAY, time(19, 0), 1)
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()

        assert await sync.reset_day() == 2
        assert sync.snapshot.demand.total == 0

    @pytest.mark.asyncio
    async def test_save_max_per_slot(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()
        assert await sync.save_max_per_slot(4) == 4
        assert sync.snapshot.max_per_slot == 4
        assert sync.remaining(SLOT) == 4

    @pytest.mark.asyncio
    async def test_save_hours_for_day_and_onward(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()

        await sync.save_hours(is_closed=False, open_time="12:00", close_time="13:00", slot_minutes=30)
        assert [s["slot"] for s in sync.slots()] == ["12:00", "12:30"]

        await sync.shift_day(1)
        assert len(sync.slots()) == 14

        await sync.save_hours(is_closed=True, open_time="12:00", close_time="13:00", slot_minutes=30, onward=True)
        assert sync.slots() == []
        await sync.shift_day(30)
        assert sync.snapshot.hours.is_closed is True
        await sync.shift_day(-31)
        assert sync.snapshot.hours.source == "override"


# ============================================
# IDENTITY & NAVIGATION
# ============================================

class TestIdentityAndNavigation:

    @pytest.mark.asyncio
    async def test_sign_out_clears_view(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()

        assert await sync.set_vendor(None) is False
        assert sync.snapshot is None
        with pytest.raises(ServiceError) as exc_info:
            await sync.change_qty(SLOT, 1)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_sign_out_during_loading(self, gated_factory):
        sync = DaySync(gated_factory, VENDOR_ID, DAY)
        gated_factory.close()

        task = asyncio.create_task(sync.open())
        await _let_tasks_run()
        assert sync.state is SyncState.LOADING

        assert await sync.set_vendor(None) is False
        assert sync.state is SyncState.IDLE

        gated_factory.release()
        assert await task is False
        assert sync.state is SyncState.IDLE
        assert sync.snapshot is None

    @pytest.mark.asyncio
    async def test_switching_vendor_reloads(self, session_factory, test_session):
        await add_demand(test_session, DAY, SLOT, 6, vendor_id=OTHER_VENDOR_ID)
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()
        assert sync.qty_for(SLOT) == 0

        assert await sync.set_vendor(OTHER_VENDOR_ID) is True
        assert sync.vendor_id == OTHER_VENDOR_ID
        assert sync.qty_for(SLOT) == 6

    @pytest.mark.asyncio
    async def test_same_vendor_is_a_no_op(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.open()
        snapshot = sync.snapshot
        assert await sync.set_vendor(VENDOR_ID) is False
        assert sync.snapshot is snapshot

    @pytest.mark.asyncio
    async def test_shift_day_moves_both_ways(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY)
        await sync.shift_day(-1)
        assert sync.day == date(2024, 6, 13)
        await sync.shift_day(2)
        assert sync.day == date(2024, 6, 15)
        assert sync.snapshot.day == date(2024, 6, 15)


# ============================================
# BACKGROUND LOOP
# ============================================

class TestBackgroundLoop:

    @pytest.mark.asyncio
    async def test_periodic_refresh_picks_up_other_devices(self, session_factory, test_session):
        sync = DaySync(session_factory, VENDOR_ID, DAY, interval=0.01)
        await sync.open()
        # Written by another device after this one loaded the day
        await add_demand(test_session, DAY, SLOT, 7)
        assert sync.qty_for(SLOT) == 0
        sync.start()
        try:
            for _ in range(200):
                if sync.qty_for(SLOT) == 7:
                    break
                await asyncio.sleep(0.01)
            assert sync.qty_for(SLOT) == 7
        finally:
            await sync.stop()
        assert sync.state is SyncState.STOPPED

    @pytest.mark.asyncio
    async def test_loop_survives_store_failures(self, session_factory, monkeypatch):
        sync = DaySync(session_factory, VENDOR_ID, DAY, interval=0.01)
        await sync.open()
        calls = {"count": 0}

        async def failing_load(store, vendor_id, day, quiet=False):
            calls["count"] += 1
            raise StoreFailure("refresh")

        monkeypatch.setattr("backend.app.services.sync.load_day_snapshot", failing_load)
        sync.start()
        try:
            for _ in range(200):
                if calls["count"] >= 2:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sync.stop()
        assert calls["count"] >= 2
        assert sync.snapshot is not None

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_restartable(self, session_factory):
        sync = DaySync(session_factory, VENDOR_ID, DAY, interval=10)
        sync.start()
        task = sync._task
        sync.start()
        assert sync._task is task
        await sync.stop()
        assert sync.state is SyncState.STOPPED

        sync.start()
        assert sync.state is SyncState.IDLE
        await sync.stop()
