"""Finding repository."""

from sqlalchemy import func, select

from secgate.db.models.finding import FindingRow
from secgate.db.models.scan import ScanRow
from secgate.repositories.base import BaseRepository


class FindingRepository(BaseRepository[FindingRow]):
    model = FindingRow
    id_column = "finding_id"
    id_prefix = "find_"

    async def list_by_scan(self, scan_id: str) -> list[FindingRow]:
        return await self.find(FindingRow.scan_id == scan_id)

    async def list_by_repository(self, repository_id: str) -> list[FindingRow]:
        stmt = (
            select(FindingRow)
            .join(ScanRow, ScanRow.scan_id == FindingRow.scan_id)
            .where(ScanRow.repository_id == repository_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def severity_counts(self, scan_id: str) -> dict[str, int]:
        stmt = (
            select(FindingRow.severity, func.count(FindingRow.finding_id))
            .where(FindingRow.scan_id == scan_id)
            .group_by(FindingRow.severity)
        )
        result = await self.session.execute(stmt)
        return dict(result.all())
