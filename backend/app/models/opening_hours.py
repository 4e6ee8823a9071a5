"""Opening hours: single-date overrides and standing rules effective from a start day."""
from datetime import date, time

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.base import Base, TimestampMixin


class DateOverride(TimestampMixin, Base):
    """Hours for exactly one date ("save only this day"). Supersedes any rule."""
    __tablename__ = 'date_overrides'
    __unique_key__ = ('vendor_id', 'day')

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'day', name='uq_date_override_vendor_day'),
        CheckConstraint('slot_minutes > 0', name='ck_date_override_slot_minutes'),
    )


class StandingRule(TimestampMixin, Base):
    """Hours that apply from start_day onward ("apply from this day") until a later rule starts."""
    __tablename__ = 'standing_rules'
    __unique_key__ = ('vendor_id', 'start_day')

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    vendor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    start_day: Mapped[date] = mapped_column(Date, nullable=False)
    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    open_time: Mapped[time] = mapped_column(Time, nullable=False)
    close_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint('vendor_id', 'start_day', name='uq_standing_rule_vendor_start_day'),
        CheckConstraint('slot_minutes > 0', name='ck_standing_rule_slot_minutes'),
    )
