"""Scan repository."""

from datetime import datetime

from secgate.db.models.scan import ScanRow
from secgate.models.enums import ScanStatus
from secgate.repositories.base import BaseRepository


class ScanRepository(BaseRepository[ScanRow]):
    model = ScanRow
    id_column = "scan_id"
    id_prefix = "scan_"

    async def list_by_repository(self, repository_id: str, limit: int = 20) -> list[ScanRow]:
        return await self.find(
            ScanRow.repository_id == repository_id,
            order_by=ScanRow.created_at.desc(),
            limit=limit,
        )

    async def list_completed_between(
        self,
        repository_id: str,
        start: datetime,
        end: datetime,
    ) -> list[ScanRow]:
        """Completed scans whose completion time falls in ``[start, end]``."""
        return await self.find(
            ScanRow.repository_id == repository_id,
            ScanRow.status == ScanStatus.COMPLETED,
            ScanRow.completed_at >= start,
            ScanRow.completed_at <= end,
            order_by=ScanRow.completed_at,
        )
