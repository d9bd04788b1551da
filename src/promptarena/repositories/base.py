"""Repository base shared by every table-backed repository.

Subclasses declare ``model`` and ``pk_field``; the base turns those into
primary-key and org-scoped lookups plus the create/update/delete trio.
Nothing here commits: the request-scoped session owns the transaction.
"""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from promptarena.db.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    model: ClassVar[type[Base]]
    pk_field: ClassVar[str]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, pk_value: Any) -> T | None:
        return await self.first(getattr(self.model, self.pk_field) == pk_value)

    async def get_in_org(self, org_id: str, pk_value: Any) -> T | None:
        """Primary-key lookup that misses when the row belongs to another org."""
        return await self.first(
            getattr(self.model, "org_id") == org_id,
            getattr(self.model, self.pk_field) == pk_value,
        )

    async def first(self, *criteria: ColumnElement[bool]) -> T | None:
        stmt = select(self.model).where(*criteria).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def all(self, *criteria: ColumnElement[bool], order_by: Any = None) -> list[T]:
        stmt = select(self.model).where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **values: Any) -> T:
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **values: Any) -> T:
        for key, value in values.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def delete(self, row: T) -> None:
        await self.session.delete(row)
        await self.session.flush()
