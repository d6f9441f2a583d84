"""Shared plumbing for the table repositories.

A repository names its row class, the primary-key column and the prefix new
ids get; everything else is a query specific to that table.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from secgate.db.base import Base
from secgate.services.id_generator import generate_id

RowT = TypeVar("RowT", bound=Base)


class BaseRepository(Generic[RowT]):
    model: type[RowT]
    id_column: str
    id_prefix: str

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, row_id: str) -> RowT | None:
        return await self.session.get(self.model, row_id)

    async def create(self, **fields: Any) -> RowT:
        """Insert a row, generating its id unless one is given."""
        fields.setdefault(self.id_column, generate_id(self.id_prefix))
        row = self.model(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: RowT, **changes: Any) -> RowT:
        for name, value in changes.items():
            setattr(row, name, value)
        await self.session.flush()
        return row

    async def delete(self, row: RowT) -> None:
        await self.session.delete(row)
        await self.session.flush()

    async def find(self, *criteria, order_by=None, limit: int | None = None) -> list[RowT]:
        stmt = select(self.model).where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
