# backend/app/services/store.py
"""
Keyed record store used by the slot services.

A ``SlotStore`` wraps one ``AsyncSession`` and is constructed explicitly by
whoever owns the session (request dependency, day view, tests). Every model it
handles declares its unique key in ``__unique_key__``; all reads and writes are
addressed by that key or by a leading prefix of it.

Any SQLAlchemy error is rolled back and re-raised as ``StoreFailure``.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, time
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.constants import ATOMIC_DELTA_ATTEMPTS
from backend.app.core.exceptions import ServiceError
from backend.app.core.logging import get_logger
from backend.app.core.metrics import store_failures_total
from backend.app.models.opening_hours import StandingRule
from backend.app.models.slot_demand import SlotDemand

logger = get_logger(__name__)


class StoreFailure(ServiceError):
    """The database could not serve the request. Nothing is assumed committed."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        message = f"Storage unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, 503)


class SlotStore:
    """Unique-key access to vendor settings, opening hours and slot demand."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            store_failures_total.labels(operation=operation).inc()
            logger.error("Store operation failed", operation=operation, error=str(e))
            await self.session.rollback()
            raise StoreFailure(operation) from e

    @staticmethod
    def _key_clauses(model: Any, key: Sequence[Any], *, exact: bool) -> list:
        columns = model.__unique_key__
        if len(key) > len(columns) or (exact and len(key) != len(columns)):
            raise ValueError(f"Key {tuple(key)!r} does not match {model.__name__} key {columns!r}")
        return [getattr(model, column) == value for column, value in zip(columns, key)]

    def _insert(self, model: Any):
        dialect = self.session.bind.dialect.name
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise NotImplementedError(f"Upserts are not supported on {dialect}")

    # --- reads ---

    async def get(self, model: Any, key: Sequence[Any]) -> Optional[Any]:
        """Return the row stored under the full unique key, or None."""
        clauses = self._key_clauses(model, key, exact=True)
        async with self._guard(f"get:{model.__tablename__}"):
            result = await self.session.execute(
                select(model).where(*clauses).execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

    async def list_by_prefix(self, model: Any, partial_key: Sequence[Any]) -> list[Any]:
        """Range query: all rows whose key starts with ``partial_key``."""
        clauses = self._key_clauses(model, partial_key, exact=False)
        order = [getattr(model, column) for column in model.__unique_key__]
        async with self._guard(f"list:{model.__tablename__}"):
            result = await self.session.execute(
                select(model)
                .where(*clauses)
                .order_by(*order)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def most_recent_rule(self, vendor_id: str, max_start_day: date) -> Optional[StandingRule]:
        """
        The standing rule with the greatest ``start_day <= max_start_day``.

        Two rows on the same start_day cannot exist under the unique constraint;
        if they do anyway the lowest id wins and a warning is logged.
        """
        async with self._guard("most_recent_rule"):
            result = await self.session.execute(
                select(StandingRule)
                .where(
                    StandingRule.vendor_id == vendor_id,
                    StandingRule.start_day <= max_start_day,
                )
                .order_by(StandingRule.start_day.desc(), StandingRule.id.asc())
                .limit(2)
                .execution_options(populate_existing=True)
            )
            rows = list(result.scalars().all())
        if not rows:
            return None
        if len(rows) > 1 and rows[0].start_day == rows[1].start_day:
            logger.warning(
                "Standing rules share a start day",
                vendor_id=vendor_id,
                start_day=rows[0].start_day.isoformat(),
                chosen_rule_id=rows[0].id,
                other_rule_id=rows[1].id,
            )
        return rows[0]

    async def current_qty(self, key: Sequence[Any]) -> int:
        """Committed demand for (vendor_id, day, slot_time); 0 when no row exists."""
        clauses = self._key_clauses(SlotDemand, key, exact=True)
        async with self._guard("current_qty"):
            result = await self.session.execute(select(SlotDemand.qty).where(*clauses))
            return result.scalar_one_or_none() or 0

    # --- writes ---

    async def upsert(self, model: Any, key: Sequence[Any], values: dict[str, Any]) -> None:
        """Insert-or-replace the row under ``key``. Idempotent."""
        columns = model.__unique_key__
        self._key_clauses(model, key, exact=True)
        now = datetime.utcnow()
        row = {**dict(zip(columns, key)), **values, "updated_at": now}
        stmt = self._insert(model).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(columns),
            set_={**{name: stmt.excluded[name] for name in values}, "updated_at": now},
        )
        async with self._guard(f"upsert:{model.__tablename__}"):
            await self.session.execute(stmt)

    async def insert_if_absent(self, model: Any, key: Sequence[Any], values: dict[str, Any]) -> bool:
        """Create the row only when nothing is stored under ``key``. Returns True if inserted."""
        columns = model.__unique_key__
        self._key_clauses(model, key, exact=True)
        stmt = (
            self._insert(model)
            .values(**dict(zip(columns, key)), **values)
            .on_conflict_do_nothing(index_elements=list(columns))
        )
        async with self._guard(f"insert:{model.__tablename__}"):
            result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def delete(self, model: Any, key: Sequence[Any]) -> int:
        clauses = self._key_clauses(model, key, exact=True)
        async with self._guard(f"delete:{model.__tablename__}"):
            result = await self.session.execute(delete(model).where(*clauses))
        return result.rowcount or 0

    async def delete_by_prefix(self, model: Any, partial_key: Sequence[Any]) -> int:
        """Bulk delete every row whose key starts with ``partial_key``."""
        clauses = self._key_clauses(model, partial_key, exact=False)
        if not clauses:
            raise ValueError("Refusing to delete without a key prefix")
        async with self._guard(f"delete_prefix:{model.__tablename__}"):
            result = await self.session.execute(delete(model).where(*clauses))
        return result.rowcount or 0

    async def apply_bounded_delta(
        self,
        key: tuple[str, date, time],
        delta: int,
        ceiling: int,
    ) -> tuple[int, Optional[int]]:
        """
        Atomically move demand under ``key`` by ``delta`` without crossing ``ceiling``.

        Every write is conditional on the quantity read just before it
        (compare-and-set), so two writers can never both land on a stale read.
        The result is clamped at zero and a zero result deletes the row.

        Returns ``(observed, committed)``: ``committed`` is None when the
        ceiling would be exceeded, in which case nothing was written.
        """
        clauses = self._key_clauses(SlotDemand, key, exact=True)
        vendor_id, day, slot_time = key
        for attempt in range(1, ATOMIC_DELTA_ATTEMPTS + 1):
            current = await self.current_qty(key)
            target = max(0, current + delta)
            if target > ceiling:
                return current, None
            async with self._guard("apply_bounded_delta"):
                if current == 0 and target == 0:
                    return current, 0
                if current == 0:
                    result = await self.session.execute(
                        self._insert(SlotDemand)
                        .values(vendor_id=vendor_id, day=day, slot_time=slot_time, qty=target)
                        .on_conflict_do_nothing(index_elements=list(SlotDemand.__unique_key__))
                    )
                elif target == 0:
                    result = await self.session.execute(
                        delete(SlotDemand).where(*clauses, SlotDemand.qty == current)
                    )
                else:
                    result = await self.session.execute(
                        update(SlotDemand)
                        .where(*clauses, SlotDemand.qty == current)
                        .values(qty=target, updated_at=datetime.utcnow())
                    )
            if (result.rowcount or 0) > 0:
                return current, target
            logger.debug("Slot demand changed underneath, retrying", attempt=attempt, observed=current)
        raise StoreFailure("apply_bounded_delta", "slot is being updated concurrently, try again")

    # --- transaction ---

    async def commit(self) -> None:
        async with self._guard("commit"):
            await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
