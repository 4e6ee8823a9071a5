"""Committed demand per (vendor, day, slot). A missing row means zero."""
from datetime import date, time

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.base import Base, TimestampMixin


class SlotDemand(TimestampMixin, Base):
    __tablename__ = 'slot_demand'
    __unique_key__ = ('vendor_id', 'day', 'slot_time')

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[time] = mapped_column(Time, nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'day', 'slot_time', name='uq_slot_demand_vendor_day_slot'),
        # Zero is represented by absence of the row
        CheckConstraint('qty > 0', name='ck_slot_demand_qty_positive'),
        Index('ix_slot_demand_vendor_day', 'vendor_id', 'day'),
    )
