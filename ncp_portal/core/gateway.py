"""
Persistence gateway: row-level CRUD and filtered queries over the portal tables.

Each call runs in its own session and transaction and hands back plain dicts,
so callers never hold ORM state between calls. Filters are dicts of
``column`` (equality), ``column__in`` and ``column__startswith`` keys.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

from sqlalchemy import delete, func, inspect, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ncp_portal.core.exceptions import DuplicateKeyError, PersistenceError
from ncp_portal.core.logging_config import get_logger
from ncp_portal.models import AuditLogEntry, NCPReport, Notification, SystemLog, User

logger = get_logger(__name__)

Row = Dict[str, Any]

TABLES = {
    "ncp_reports": NCPReport,
    "users": User,
    "notifications": Notification,
    "ncp_audit_log": AuditLogEntry,
    "system_logs": SystemLog,
}


def _to_row(obj) -> Row:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


def _is_unique_violation(exc: IntegrityError) -> bool:
    text = str(exc.orig).lower()
    return "unique" in text or "duplicate key" in text


class PersistenceGateway:
    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @staticmethod
    def _model(table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}") from None

    @staticmethod
    def _conditions(model, filters: Optional[Mapping[str, Any]]) -> list:
        conditions = []
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            column = getattr(model, name, None)
            if column is None:
                raise ValueError(f"Unknown column {model.__tablename__}.{name}")
            if op == "":
                conditions.append(column.is_(None) if value is None else column == value)
            elif op == "in":
                conditions.append(column.in_(list(value)))
            elif op == "startswith":
                conditions.append(column.startswith(value, autoescape=True))
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return conditions

    @asynccontextmanager
    async def _transaction(self, table: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateKeyError(f"Duplicate key in {table}") from e
            raise PersistenceError(f"Constraint violated in {table}: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error("Database error on %s: %s", table, e)
            raise PersistenceError(f"Database error on {table}") from e

    async def get(self, table: str, row_id: int) -> Optional[Row]:
        model = self._model(table)
        async with self._transaction(table) as session:
            obj = await session.get(model, row_id)
            return _to_row(obj) if obj is not None else None

    async def insert(self, table: str, fields: Mapping[str, Any]) -> Row:
        model = self._model(table)
        async with self._transaction(table) as session:
            obj = model(**fields)
            session.add(obj)
            await session.flush()
            await session.refresh(obj)
            return _to_row(obj)

    async def update_where(self, table: str, match: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        """Conditional update; returns the number of rows that matched."""
        model = self._model(table)
        stmt = (
            update(model)
            .where(*self._conditions(model, match))
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        async with self._transaction(table) as session:
            result = await session.execute(stmt)
            return result.rowcount

    async def query(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        model = self._model(table)
        stmt = select(model).where(*self._conditions(model, filters))
        if order_by:
            column = getattr(model, order_by)
            if descending:
                stmt = stmt.order_by(column.desc(), model.id.desc())
            else:
                stmt = stmt.order_by(column.asc(), model.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._transaction(table) as session:
            result = await session.execute(stmt)
            return [_to_row(obj) for obj in result.scalars().all()]

    async def count(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        model = self._model(table)
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, filters))
        async with self._transaction(table) as session:
            return (await session.execute(stmt)).scalar_one()

    async def count_by(
        self,
        table: str,
        column: str,
        filters: Optional[Mapping[str, Any]] = None,
        prefix_length: Optional[int] = None,
    ) -> Dict[Any, int]:
        """Row counts grouped by ``column``, or by its first ``prefix_length`` characters."""
        model = self._model(table)
        col = getattr(model, column)
        if prefix_length:
            col = func.substr(col, 1, prefix_length)
        stmt = select(col, func.count()).where(*self._conditions(model, filters)).group_by(col)
        async with self._transaction(table) as session:
            result = await session.execute(stmt)
            return {key: n for key, n in result.all()}

    async def delete(self, table: str, match: Mapping[str, Any]) -> int:
        model = self._model(table)
        stmt = delete(model).where(*self._conditions(model, match)).execution_options(synchronize_session=False)
        async with self._transaction(table) as session:
            result = await session.execute(stmt)
            return result.rowcount
