"""Daily trend roll-ups and period comparison.

A day's ``total_findings`` is the average total across that day's completed
scans, while the per-severity counts are sums across them. Averages and
percentage changes round half up to whole numbers.
"""

from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncIterator, Iterable
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secgate.config import settings
from secgate.db.models.trend import ScanTrendRow
from secgate.models.trend import (
    TREND_BUCKETS,
    PeriodAverage,
    PeriodComparison,
    TrendCounts,
    TrendPoint,
)
from secgate.repositories.scan_repo import ScanRepository
from secgate.repositories.trend_repo import TrendRepository

logger = logging.getLogger(__name__)

_SEVERITY_BUCKETS = tuple(b for b in TREND_BUCKETS if b != "total_findings")


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_average(rows: Iterable) -> TrendCounts:
    """Per-bucket mean over trend rows (anything with the bucket attributes)."""
    rows = list(rows)
    if not rows:
        return TrendCounts()
    return TrendCounts(**{
        bucket: _round_half_up(sum(getattr(row, bucket) for row in rows) / len(rows))
        for bucket in TREND_BUCKETS
    })


def calculate_change(old: float, new: float) -> int:
    """Percentage change from ``old`` to ``new``; 100 for any rise from zero."""
    if old == 0:
        return 100 if new > 0 else 0
    return _round_half_up((new - old) / old * 100)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _to_point(row: ScanTrendRow) -> TrendPoint:
    return TrendPoint(
        repository_id=row.repository_id,
        date=row.date,
        scans_count=row.scans_count,
        **{bucket: getattr(row, bucket) for bucket in TREND_BUCKETS},
    )


class TrendAggregator:
    """Reads completed scans and maintains one trend row per repository and day.

    Aggregations of the same (repository, day) key are serialized inside this
    instance so concurrent callers cannot overwrite each other's upsert.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], tz: str | None = None):
        self.session_factory = session_factory
        self.zone = ZoneInfo(tz or settings.trend_timezone)
        self._locks: dict[tuple[str, date], asyncio.Lock] = {}
        self._lock_users: dict[tuple[str, date], int] = {}

    @asynccontextmanager
    async def _serialized(self, key: tuple[str, date]) -> AsyncIterator[None]:
        # Locks live only while someone holds or waits on them.
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    def _day_bounds(self, day: date) -> tuple[datetime, datetime]:
        start = datetime.combine(day, time.min, tzinfo=self.zone)
        end = datetime.combine(day, time.max, tzinfo=self.zone)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def today(self) -> date:
        return datetime.now(self.zone).date()

    async def aggregate_daily(self, repository_id: str, day: date | datetime | None = None) -> TrendPoint:
        day = _as_date(day) if day is not None else self.today()
        start, end = self._day_bounds(day)

        async with self._serialized((repository_id, day)):
            async with self.session_factory() as session:
                scans = await ScanRepository(session).list_completed_between(repository_id, start, end)

                counts = {bucket: 0 for bucket in TREND_BUCKETS}
                if scans:
                    for bucket in _SEVERITY_BUCKETS:
                        counts[bucket] = sum(getattr(scan, bucket) for scan in scans)
                    counts["total_findings"] = _round_half_up(
                        sum(scan.total_findings for scan in scans) / len(scans)
                    )

                row = await TrendRepository(session).upsert(
                    repository_id, day, scans_count=len(scans), **counts
                )
                await session.commit()
                point = _to_point(row)

        logger.info(
            "Aggregated %d scans for %s on %s (total_findings=%d)",
            len(scans), repository_id, day, point.total_findings,
        )
        return point

    async def get_trends(
        self,
        repository_id: str,
        days: int = 30,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[TrendPoint]:
        end_day = _as_date(end) if end is not None else self.today()
        start_day = _as_date(start) if start is not None else end_day - timedelta(days=days)
        async with self.session_factory() as session:
            rows = await TrendRepository(session).list_between(repository_id, start_day, end_day)
            return [_to_point(row) for row in rows]

    async def compare_periods(
        self,
        repository_id: str,
        period1_start: date | datetime,
        period1_end: date | datetime,
        period2_start: date | datetime,
        period2_end: date | datetime,
    ) -> PeriodComparison:
        period1 = await self.get_trends(repository_id, start=period1_start, end=period1_end)
        period2 = await self.get_trends(repository_id, start=period2_start, end=period2_end)

        avg1 = calculate_average(period1)
        avg2 = calculate_average(period2)

        return PeriodComparison(
            period1=PeriodAverage(start=_as_date(period1_start), end=_as_date(period1_end), average=avg1),
            period2=PeriodAverage(start=_as_date(period2_start), end=_as_date(period2_end), average=avg2),
            changes={
                bucket: calculate_change(getattr(avg1, bucket), getattr(avg2, bucket))
                for bucket in TREND_BUCKETS
            },
        )
