"""
Document Store - Collection-style persistence over the ORM models.

Services talk to records through this narrow interface: insert, fetch by id,
filtered query, partial update and delete. Every write is committed
immediately; there are no multi-record transactions.
"""

from typing import Any, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.models import Base
from backoffice.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=Base)

# (field, operator, value)
Condition = tuple[str, str, Any]

OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">=", "in"})


class DocumentStore(Protocol):
    """Persistence contract shared by the SQL store and test doubles."""

    async def insert(self, record: ModelT) -> ModelT: ...

    async def get_by_id(self, model: type[ModelT], record_id: str) -> ModelT | None: ...

    async def query(
        self,
        model: type[ModelT],
        where: list[Condition] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[ModelT]: ...

    async def query_by_field(
        self, model: type[ModelT], field: str, op: str, value: Any
    ) -> list[ModelT]: ...

    async def update(self, record: ModelT, changes: dict[str, Any]) -> ModelT: ...

    async def delete(self, record: Base) -> None: ...


def _column_clause(model: type[Base], field: str, op: str, value: Any) -> Any:
    if op not in OPERATORS:
        raise ValidationError(f"Unsupported query operator: {op}")

    column = getattr(model, field, None)
    if column is None:
        raise ValidationError(f"Unknown field for {model.__name__}: {field}")

    if op == "==":
        return column.is_(None) if value is None else column == value
    if op == "!=":
        return column.is_not(None) if value is None else column != value
    if op == "<":
        return column < value
    if op == "<=":
        return column <= value
    if op == ">":
        return column > value
    if op == ">=":
        return column >= value
    return column.in_(list(value))


class SqlDocumentStore:
    """DocumentStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def insert(self, record: ModelT) -> ModelT:
        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def get_by_id(self, model: type[ModelT], record_id: str) -> ModelT | None:
        return await self.session.get(model, record_id)

    async def query(
        self,
        model: type[ModelT],
        where: list[Condition] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[ModelT]:
        stmt = select(model)
        for field, op, value in where or []:
            stmt = stmt.where(_column_clause(model, field, op, value))

        if order_by is not None:
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def query_by_field(
        self, model: type[ModelT], field: str, op: str, value: Any
    ) -> list[ModelT]:
        return await self.query(model, where=[(field, op, value)])

    async def update(self, record: ModelT, changes: dict[str, Any]) -> ModelT:
        for field, value in changes.items():
            setattr(record, field, value)
        await self.session.commit()
        await self.session.refresh(record)
        return record

    async def delete(self, record: Base) -> None:
        await self.session.delete(record)
        await self.session.commit()
