# backend/app/services/vendor_settings.py
"""Per-vendor capacity ceiling (max_per_slot)."""

from backend.app.core.constants import MAX_PER_SLOT_LIMIT
from backend.app.core.logging import get_logger
from backend.app.core.settings import get_settings
from backend.app.models.vendor_settings import VendorSettings
from backend.app.services.hours import InvalidConfigurationError
from backend.app.services.store import SlotStore

logger = get_logger(__name__)


class VendorSettingsService:
    def __init__(self, store: SlotStore):
        self.store = store

    async def get_or_create(self, vendor_id: str) -> VendorSettings:
        """Return the vendor's settings row, creating it with the default ceiling on first access."""
        settings = await self.store.get(VendorSettings, (vendor_id,))
        if settings is not None:
            return settings
        default = get_settings().DEFAULT_MAX_PER_SLOT
        created = await self.store.insert_if_absent(VendorSettings, (vendor_id,), {"max_per_slot": default})
        await self.store.commit()
        if created:
            logger.info("Created vendor settings", vendor_id=vendor_id, max_per_slot=default)
        # Another device may have created the row first; read whatever won
        return await self.store.get(VendorSettings, (vendor_id,))

    async def save_max_per_slot(self, vendor_id: str, max_per_slot: int) -> VendorSettings:
        if isinstance(max_per_slot, bool) or not isinstance(max_per_slot, int):
            raise InvalidConfigurationError("Capacity must be a whole number")
        if max_per_slot < 0 or max_per_slot > MAX_PER_SLOT_LIMIT:
            raise InvalidConfigurationError(f"Capacity must be between 0 and {MAX_PER_SLOT_LIMIT}")
        await self.store.upsert(VendorSettings, (vendor_id,), {"max_per_slot": max_per_slot})
        await self.store.commit()
        logger.info("Saved slot capacity", vendor_id=vendor_id, max_per_slot=max_per_slot)
        return await self.store.get(VendorSettings, (vendor_id,))
