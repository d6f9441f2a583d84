"""Scan trend repository."""

from datetime import date

from sqlalchemy import select

from secgate.db.models.trend import ScanTrendRow
from secgate.repositories.base import BaseRepository


class TrendRepository(BaseRepository[ScanTrendRow]):
    model = ScanTrendRow
    id_column = "trend_id"
    id_prefix = "trend_"

    async def get_for_date(self, repository_id: str, day: date) -> ScanTrendRow | None:
        stmt = select(ScanTrendRow).where(
            ScanTrendRow.repository_id == repository_id,
            ScanTrendRow.date == day,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, repository_id: str, day: date, **counts: int) -> ScanTrendRow:
        existing = await self.get_for_date(repository_id, day)
        if existing:
            return await self.update(existing, **counts)
        return await self.create(
            repository_id=repository_id,
            date=day,
            **counts,
        )

    async def list_between(self, repository_id: str, start: date, end: date) -> list[ScanTrendRow]:
        return await self.find(
            ScanTrendRow.repository_id == repository_id,
            ScanTrendRow.date >= start,
            ScanTrendRow.date <= end,
            order_by=ScanTrendRow.date.asc(),
        )
