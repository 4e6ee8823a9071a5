from pydantic import BaseModel, Field
from typing import List


# --- Настройки ---
class VendorSettingsResponse(BaseModel):
    vendor_id: str
    max_per_slot: int


class MaxPerSlotUpdate(BaseModel):
    max_per_slot: int


# --- Часы работы ---
class HoursUpdate(BaseModel):
    is_closed: bool = False
    # Строки "HH:MM" или "HH:MM:SS"; проверяются сервисом
    open_time: str
    close_time: str
    slot_minutes: int


class HoursResponse(BaseModel):
    is_closed: bool
    open_time: str
    close_time: str
    slot_minutes: int
    source: str


# --- Слоты ---
class SlotResponse(BaseModel):
    slot: str
    used: int
    remaining: int


class DayViewResponse(BaseModel):
    day: str
    max_per_slot: int
    hours: HoursResponse
    slots: List[SlotResponse] = []
    total: int = 0


class SlotDeltaRequest(BaseModel):
    delta: int = Field(..., description="Change in committed quantity, may be negative")


class SlotDeltaResponse(BaseModel):
    slot: str
    previous: int
    qty: int
    remaining: int


class ResetDayResponse(BaseModel):
    day: str
    deleted: int
