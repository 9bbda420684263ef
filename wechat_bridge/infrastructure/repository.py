"""
Table access through a small set of query primitives.

Services only ever filter by equality, by "field is absent" and by
"field greater than", sort, limit, count, insert and bulk-update. Keeping
that surface explicit lets the chat logic stay independent of SQLAlchemy.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

logger = logging.getLogger(__name__)


class DuplicateRecordError(Exception):
    """Raised when an insert violates a unique constraint."""


class Operator(str, Enum):
    """Supported filter operators."""
    EQ = "eq"
    EXISTS = "exists"
    GT = "gt"


@dataclass(frozen=True)
class Condition:
    field: str
    op: Operator
    value: Any = None


def eq(field: str, value: Any) -> Condition:
    return Condition(field, Operator.EQ, value)


def exists(field: str, present: bool = True) -> Condition:
    """Match rows where `field` is set (present=True) or null (present=False)."""
    return Condition(field, Operator.EXISTS, present)


def gt(field: str, value: Any) -> Condition:
    return Condition(field, Operator.GT, value)


@dataclass(frozen=True)
class Query:
    """Immutable query description: filters, ordering and a row limit."""

    conditions: Tuple[Condition, ...] = ()
    order_by: Tuple[Tuple[str, bool], ...] = ()
    limit: Optional[int] = None

    def where(self, *conditions: Condition) -> "Query":
        return replace(self, conditions=self.conditions + tuple(conditions))

    def sort(self, field: str, descending: bool = False) -> "Query":
        return replace(self, order_by=self.order_by + ((field, descending),))

    def take(self, limit: int) -> "Query":
        return replace(self, limit=limit)


class Repository(ABC):
    """Storage-agnostic table interface."""

    @abstractmethod
    async def insert(self, values: dict) -> Any:
        """Insert a row. Raises DuplicateRecordError on a unique violation."""

    @abstractmethod
    async def find(self, query: Query) -> List[Any]:
        """Rows matching the query, ordered and limited as requested."""

    @abstractmethod
    async def count(self, query: Query) -> int:
        """Number of rows matching the query filters."""

    @abstractmethod
    async def update(self, query: Query, values: dict) -> int:
        """Set `values` on every row matching the query. Returns rows changed."""

    async def find_one(self, query: Query) -> Optional[Any]:
        rows = await self.find(query.take(1))
        return rows[0] if rows else None


class SQLAlchemyRepository(Repository):
    """Repository backed by an async SQLAlchemy model."""

    def __init__(self, session_factory: async_sessionmaker, model):
        self.session_factory = session_factory
        self.model = model

    def _column(self, field: str):
        column = getattr(self.model, field, None)
        if column is None:
            raise ValueError(f"{self.model.__name__} has no field {field!r}")
        return column

    def _apply_conditions(self, stmt, query: Query):
        for condition in query.conditions:
            column = self._column(condition.field)
            if condition.op == Operator.EQ:
                stmt = stmt.where(column == condition.value)
            elif condition.op == Operator.EXISTS:
                stmt = stmt.where(column.is_not(None) if condition.value else column.is_(None))
            elif condition.op == Operator.GT:
                stmt = stmt.where(column > condition.value)
            else:
                raise ValueError(f"Unsupported operator: {condition.op}")
        return stmt

    async def insert(self, values: dict) -> Any:
        record = self.model(**values)
        async with self.session_factory() as session:
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.debug(f"Duplicate {self.model.__tablename__} row: {e}")
                raise DuplicateRecordError(str(e)) from e
        return record

    async def find(self, query: Query) -> List[Any]:
        stmt = self._apply_conditions(select(self.model), query)
        for field, descending in query.order_by:
            column = self._column(field)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def count(self, query: Query) -> int:
        stmt = self._apply_conditions(select(func.count()).select_from(self.model), query)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def update(self, query: Query, values: dict) -> int:
        stmt = self._apply_conditions(update(self.model), query).values(**values)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount
