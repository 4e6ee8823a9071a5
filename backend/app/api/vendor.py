"""Vendor API - hours, capacity and slot demand. Protected by X-Vendor-Token."""
from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from backend.app.api.deps import get_store
from backend.app.api.vendor_auth import require_vendor_token
from backend.app.core.exceptions import ServiceError
from backend.app.core.logging import get_logger
from backend.app.schemas import (
    DayViewResponse,
    HoursResponse,
    HoursUpdate,
    MaxPerSlotUpdate,
    ResetDayResponse,
    SlotDeltaRequest,
    SlotDeltaResponse,
    VendorSettingsResponse,
)
from backend.app.services.capacity import CapacityEnforcer
from backend.app.services.day_view import load_day_snapshot
from backend.app.services.hours import HoursResolver
from backend.app.services.slots import format_slot
from backend.app.services.store import SlotStore
from backend.app.services.vendor_settings import VendorSettingsService

router = APIRouter(dependencies=[Depends(require_vendor_token)])
logger = get_logger(__name__)


def _handle_service_error(e: ServiceError):
    """Convert service exceptions to HTTP exceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.message)


# --- SETTINGS ---
@router.get("/settings", response_model=VendorSettingsResponse)
async def get_vendor_settings(
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    try:
        settings = await VendorSettingsService(store).get_or_create(vendor_id)
    except ServiceError as e:
        _handle_service_error(e)
    return VendorSettingsResponse(vendor_id=vendor_id, max_per_slot=settings.max_per_slot)


@router.put("/settings", response_model=VendorSettingsResponse)
async def put_vendor_settings(
    data: MaxPerSlotUpdate,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    try:
        settings = await VendorSettingsService(store).save_max_per_slot(vendor_id, data.max_per_slot)
    except ServiceError as e:
        _handle_service_error(e)
    return VendorSettingsResponse(vendor_id=vendor_id, max_per_slot=settings.max_per_slot)


# --- DAY VIEW ---
@router.get("/days/{day}", response_model=DayViewResponse)
async def get_day(
    day: date,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    """Effective hours, slots with used/remaining capacity and the day's total."""
    try:
        snapshot = await load_day_snapshot(store, vendor_id, day)
    except ServiceError as e:
        _handle_service_error(e)
    return snapshot.as_dict()


# --- HOURS ---
@router.put("/days/{day}/hours", response_model=HoursResponse)
async def put_day_hours(
    day: date,
    data: HoursUpdate,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    """Save hours for this day only."""
    try:
        hours = await HoursResolver(store).save_day_override(vendor_id, day, **data.model_dump())
    except ServiceError as e:
        _handle_service_error(e)
    return hours.as_dict()


@router.put("/days/{day}/hours/onward", response_model=HoursResponse)
async def put_hours_from_day(
    day: date,
    data: HoursUpdate,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    """Save hours that apply from this day onward."""
    try:
        hours = await HoursResolver(store).save_standing_rule(vendor_id, day, **data.model_dump())
    except ServiceError as e:
        _handle_service_error(e)
    return hours.as_dict()


# --- DEMAND ---
@router.post("/days/{day}/slots/{slot}", response_model=SlotDeltaResponse)
async def change_slot_demand(
    day: date,
    slot: str,
    data: SlotDeltaRequest,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    """Add (or with a negative delta, remove) demand for one slot."""
    try:
        result = await CapacityEnforcer(store).apply_delta(vendor_id, day, slot, data.delta)
    except ServiceError as e:
        _handle_service_error(e)
    return SlotDeltaResponse(
        slot=format_slot(result.slot),
        previous=result.previous,
        qty=result.qty,
        remaining=result.remaining,
    )


@router.delete("/days/{day}/demand", response_model=ResetDayResponse)
async def reset_day_demand(
    day: date,
    vendor_id: str = Depends(require_vendor_token),
    store: SlotStore = Depends(get_store),
):
    """Remove all demand recorded for the day."""
    try:
        deleted = await CapacityEnforcer(store).reset_day(vendor_id, day)
    except ServiceError as e:
        _handle_service_error(e)
    return ResetDayResponse(day=day.isoformat(), deleted=deleted)
