# backend/app/services/__init__.py
"""
Services layer for business logic.
Keeps API endpoints thin and business logic testable and reusable.
"""

from backend.app.services.store import SlotStore, StoreFailure
from backend.app.services.slots import generate_slots, parse_time_of_day, format_slot
from backend.app.services.hours import (
    EffectiveHours,
    HoursResolver,
    InvalidConfigurationError,
    default_hours,
    validate_hours,
)
from backend.app.services.vendor_settings import VendorSettingsService
from backend.app.services.demand import DayDemand, DemandAggregator
from backend.app.services.capacity import (
    CapacityEnforcer,
    CapacityExceededError,
    DeltaResult,
    InvalidSlotError,
)
from backend.app.services.day_view import DaySnapshot, load_day_snapshot
from backend.app.services.sync import DaySync, SyncState

__all__ = [
    # Store
    "SlotStore",
    "StoreFailure",
    # Slots
    "generate_slots",
    "parse_time_of_day",
    "format_slot",
    # Hours
    "EffectiveHours",
    "HoursResolver",
    "InvalidConfigurationError",
    "default_hours",
    "validate_hours",
    # Settings
    "VendorSettingsService",
    # Demand & capacity
    "DayDemand",
    "DemandAggregator",
    "CapacityEnforcer",
    "CapacityExceededError",
    "DeltaResult",
    "InvalidSlotError",
    # Day view
    "DaySnapshot",
    "load_day_snapshot",
    "DaySync",
    "SyncState",
]
