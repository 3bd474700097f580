"""
SQL Order Store Implementation

Production store backed by the unified_orders table through SQLAlchemy's
async engine. Used when STORE_BACKEND is "sql" or "auto".

A missing unified_orders table is reported as SchemaMissing, which is
the only error the resilient wrapper falls back on. Connection failures
become StoreUnavailable (503) and leave the backend choice alone;
anything else propagates.

Author: Khalil Bannouri
Version: 1.0.0
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import (
    DBAPIError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.errors import SchemaMissing, StoreUnavailable
from app.database import build_engine, build_session_maker
from app.models import ORDER_COLUMNS, UnifiedOrder
from app.services.store.base import BaseOrderStore, OrderRow

logger = logging.getLogger(__name__)

# Substrings drivers use when the table is not there
_MISSING_SCHEMA_MARKERS = (
    "no such table",          # sqlite
    "does not exist",         # postgres UndefinedTable
    "undefinedtable",
    "doesn't exist",          # mysql
)


def _is_missing_schema(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _MISSING_SCHEMA_MARKERS)


def _as_utc(value: Any) -> Any:
    # SQLite hands back naive datetimes even for timezone=True columns
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_row(order: UnifiedOrder) -> OrderRow:
    return {key: _as_utc(getattr(order, key)) for key in ORDER_COLUMNS}


class SqlOrderStore(BaseOrderStore):
    """
    SQLAlchemy-backed order store.

    Example:
        >>> store = SqlOrderStore("postgresql+psycopg://.../unified_orders")
        >>> await store.ping()
        >>> row = await store.get("MYE-LX3K9Q2A-7F3KQ9ZP2D")
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        self._engine = engine or build_engine(database_url)
        self._session_maker: async_sessionmaker[AsyncSession] = build_session_maker(self._engine)

        logger.info("SqlOrderStore initialized")

    @property
    def backend_name(self) -> str:
        return "sql"

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def _translate(self, exc: SQLAlchemyError, action: str) -> Exception:
        """Map driver errors onto the domain taxonomy."""
        # sqlite reports a missing table as OperationalError, so check schema first
        if isinstance(exc, (ProgrammingError, DBAPIError)) and _is_missing_schema(exc):
            return SchemaMissing(f"unified_orders table missing during {action}")
        if isinstance(exc, (OperationalError, InterfaceError)):
            return StoreUnavailable(f"Order store unreachable during {action}: {exc.orig or exc}")
        return exc

    async def insert(self, row: OrderRow) -> OrderRow:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    order = UnifiedOrder(**{k: v for k, v in row.items() if k in ORDER_COLUMNS})
                    session.add(order)
                return _to_row(order)
        except SQLAlchemyError as e:
            raise self._translate(e, "insert") from e

    async def get(self, order_id: str) -> Optional[OrderRow]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(UnifiedOrder).where(UnifiedOrder.order_id == order_id)
                )
                order = result.scalar_one_or_none()
                return _to_row(order) if order is not None else None
        except SQLAlchemyError as e:
            raise self._translate(e, "get") from e

    async def query(
        self,
        restaurant_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        limit: int = 50,
    ) -> list[OrderRow]:
        stmt = select(UnifiedOrder).order_by(UnifiedOrder.created_at.desc()).limit(limit)

        if restaurant_id is not None:
            stmt = stmt.where(UnifiedOrder.restaurant_id == str(restaurant_id))
        if customer_id is not None:
            stmt = stmt.where(UnifiedOrder.customer_id == str(customer_id))
        if statuses is not None:
            stmt = stmt.where(UnifiedOrder.status.in_([str(s) for s in statuses]))

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [_to_row(o) for o in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._translate(e, "query") from e

    async def update(
        self,
        order_id: str,
        changes: dict[str, Any],
        expected_statuses: Optional[Iterable[str]] = None,
    ) -> Optional[OrderRow]:
        values = {k: v for k, v in changes.items() if k in ORDER_COLUMNS}

        stmt = update(UnifiedOrder).where(UnifiedOrder.order_id == order_id).values(**values)
        if expected_statuses is not None:
            # Status check happens inside the UPDATE, not before it
            stmt = stmt.where(UnifiedOrder.status.in_([str(s) for s in expected_statuses]))

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        stmt.execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        return None

                    fetched = await session.execute(
                        select(UnifiedOrder).where(UnifiedOrder.order_id == order_id)
                    )
                    order = fetched.scalar_one()
                    return _to_row(order)
        except SQLAlchemyError as e:
            raise self._translate(e, "update") from e

    async def delete(self, order_id: str) -> bool:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(UnifiedOrder).where(UnifiedOrder.order_id == order_id)
                    )
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            raise self._translate(e, "delete") from e

    async def ping(self) -> None:
        """Select one row to prove both connectivity and schema."""
        try:
            async with self._session_maker() as session:
                await session.execute(select(UnifiedOrder.order_id).limit(1))
        except SQLAlchemyError as e:
            translated = self._translate(e, "ping")
            if isinstance(translated, StoreUnavailable):
                raise translated from e
            raise StoreUnavailable(f"Order store check failed: {e}") from e
        except OSError as e:
            raise StoreUnavailable(f"Order store unreachable: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()
