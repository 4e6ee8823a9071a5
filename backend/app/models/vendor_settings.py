"""Per-vendor capacity settings."""

from sqlalchemy import Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.base import Base, TimestampMixin


class VendorSettings(TimestampMixin, Base):
    """One row per vendor, created lazily on first access."""
    __tablename__ = 'vendor_settings'
    __unique_key__ = ('vendor_id',)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    max_per_slot: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    __table_args__ = (
        CheckConstraint('max_per_slot >= 0', name='ck_vendor_settings_max_per_slot'),
    )
