"""Store interface consumed by the repository and its SQL implementation."""

from typing import Any, Protocol
from uuid import UUID as PyUUID

import structlog
from sqlalchemy import Table, and_, func, insert, select, update
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from app.core.exceptions import StorageException, ValidationException
from app.models.appointments import appointments, doctor_appointments_view

logger = structlog.get_logger()

# Logical collections
BASE_COLLECTION = "appointments"
VIEW_COLLECTION = "v_doctor_appointments"


class AppointmentStore(Protocol):
    """Parameterized reads and writes against the appointment collections."""

    async def insert(self, collection: str, values: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        ...

    async def select(
        self,
        collection: str,
        where: dict[str, Any],
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows matching every equality in ``where``, ascending by ``order_by``."""
        ...

    async def update(
        self,
        collection: str,
        where: dict[str, Any],
        values: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update matching rows and return them as stored."""
        ...


class InsertPublisher(Protocol):
    """Sink for insert events."""

    async def publish_insert(self, table: str, record: dict[str, Any]) -> int:
        """Publish an inserted row."""
        ...


def _is_uuid(value: Any) -> bool:
    try:
        PyUUID(str(value))
        return True
    except ValueError:
        return False


class SqlAppointmentStore:
    """
    Appointment store backed by PostgreSQL through SQLAlchemy Core.

    Inserts into the base table are published to ``publisher`` after commit so
    realtime listeners see committed rows only.
    """

    tables: dict[str, Table] = {
        BASE_COLLECTION: appointments,
        VIEW_COLLECTION: doctor_appointments_view,
    }

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: InsertPublisher | None = None,
    ):
        """Initialize store with a session factory and optional event publisher."""
        self.session_factory = session_factory
        self.publisher = publisher

    def _table(self, collection: str) -> Table:
        try:
            return self.tables[collection]
        except KeyError:
            raise ValueError(f"Unknown collection '{collection}'") from None

    def _conditions(self, table: Table, where: dict[str, Any]) -> ColumnElement[bool] | None:
        """Build the WHERE clause, or None when no row can possibly match."""
        conditions = []
        for name, value in where.items():
            column = table.c[name]
            # A malformed key cannot exist in a UUID column
            if isinstance(column.type, UUID) and not _is_uuid(value):
                return None
            conditions.append(column == value)
        return and_(*conditions)

    async def insert(self, collection: str, values: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        table = self._table(collection)
        for name, value in values.items():
            if isinstance(table.c[name].type, UUID) and not _is_uuid(value):
                raise ValidationException(f"'{name}' is not a valid identifier")

        stmt = insert(table).values(**values).returning(table)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = dict(result.one()._mapping)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("store_insert_failed", collection=collection, error=str(e))
            raise StorageException(f"Failed to insert into {collection}") from e

        if self.publisher is not None:
            try:
                await self.publisher.publish_insert(table.name, row)
            except Exception as e:
                # Row is committed; realtime delivery is best effort
                logger.warning("insert_event_publish_failed", collection=collection, error=str(e))

        return row

    async def select(
        self,
        collection: str,
        where: dict[str, Any],
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows matching every equality in ``where``."""
        table = self._table(collection)
        condition = self._conditions(table, where)
        if condition is None:
            return []

        stmt = select(table).where(condition)
        if order_by:
            stmt = stmt.order_by(table.c[order_by].asc())

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [dict(row._mapping) for row in result.fetchall()]
        except SQLAlchemyError as e:
            logger.error("store_select_failed", collection=collection, error=str(e))
            raise StorageException(f"Failed to read from {collection}") from e

    async def update(
        self,
        collection: str,
        where: dict[str, Any],
        values: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update matching rows and return them as stored."""
        table = self._table(collection)
        condition = self._conditions(table, where)
        if condition is None:
            return []

        if "updated_at" in table.c and "updated_at" not in values:
            values = {**values, "updated_at": func.now()}

        stmt = update(table).where(condition).values(**values).returning(table)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = [dict(row._mapping) for row in result.fetchall()]
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("store_update_failed", collection=collection, error=str(e))
            raise StorageException(f"Failed to update {collection}") from e

        return rows
