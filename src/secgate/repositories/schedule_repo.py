"""Scheduled scan repository."""

from datetime import datetime

from secgate.db.models.schedule import ScheduledScanRow
from secgate.models.enums import ScheduleType
from secgate.repositories.base import BaseRepository


class ScheduleRepository(BaseRepository[ScheduledScanRow]):
    model = ScheduledScanRow
    id_column = "schedule_id"
    id_prefix = "sched_"

    async def list_all(self, enabled_only: bool = False) -> list[ScheduledScanRow]:
        criteria = [ScheduledScanRow.is_enabled.is_(True)] if enabled_only else []
        return await self.find(*criteria, order_by=ScheduledScanRow.next_run_at.asc())

    async def list_overdue(self, now: datetime) -> list[ScheduledScanRow]:
        """Enabled, non-manual schedules whose next run is at or before ``now``."""
        return await self.find(
            ScheduledScanRow.is_enabled.is_(True),
            ScheduledScanRow.schedule_type != ScheduleType.MANUAL,
            ScheduledScanRow.next_run_at.is_not(None),
            ScheduledScanRow.next_run_at <= now,
            order_by=ScheduledScanRow.next_run_at.asc(),
        )
