"""
SQLAlchemy Base class for all models.

Separated from database.py so models and tests can import it
without creating the application engine.
"""
from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models.

    ``__unique_key__`` names the columns SlotStore addresses rows by,
    in prefix order (vendor first).
    """
    __unique_key__: ClassVar[tuple[str, ...]] = ()


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
