"""Daily trend aggregation and period comparison."""

import asyncio
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from secgate.db.models.scan import ScanRow
from secgate.repositories.trend_repo import TrendRepository
from secgate.services.id_generator import generate_id
from secgate.trends.aggregator import TrendAggregator, calculate_average, calculate_change

DAY = date(2026, 10, 19)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


async def _add_scan(session_factory, repository_id, completed_at, total, status="completed", **counts):
    async with session_factory() as session:
        session.add(ScanRow(
            scan_id=generate_id("scan_"),
            repository_id=repository_id,
            triggered_by="ci",
            status=status,
            total_findings=total,
            completed_at=completed_at,
            **counts,
        ))
        await session.commit()


@pytest.fixture
def aggregator(session_factory):
    return TrendAggregator(session_factory, tz="UTC")


class TestCalculateChange:
    @pytest.mark.parametrize("old,new,expected", [
        (0, 0, 0),
        (0, 5, 100),
        (10, 5, -50),
        (4, 5, 25),
        (3, 4, 33),
        (8, 9, 13),
        (8, 7, -12),
        (5, 5, 0),
    ])
    def test_change(self, old, new, expected):
        assert calculate_change(old, new) == expected


class TestCalculateAverage:
    def test_empty(self):
        assert calculate_average([]).total_findings == 0

    def test_rounds_half_up(self):
        rows = [
            SimpleNamespace(total_findings=10, critical_count=1, high_count=0, medium_count=0, low_count=0, info_count=0),
            SimpleNamespace(total_findings=11, critical_count=2, high_count=0, medium_count=0, low_count=0, info_count=0),
        ]
        average = calculate_average(rows)
        assert average.total_findings == 11
        assert average.critical_count == 2


class TestAggregateDaily:
    @pytest.mark.asyncio
    async def test_no_scans_gives_zero_row(self, aggregator, repository):
        point = await aggregator.aggregate_daily(repository.repository_id, DAY)

        assert point.scans_count == 0
        assert point.total_findings == 0
        assert point.critical_count == 0
        assert [p.date for p in await aggregator.get_trends(repository.repository_id, start=DAY, end=DAY)] == [DAY]

    @pytest.mark.asyncio
    async def test_total_is_averaged_and_severities_summed(self, aggregator, repository, session_factory):
        repo_id = repository.repository_id
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 8, 0), 10, critical_count=1, high_count=4)
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 20, 0), 20, critical_count=3, high_count=6)
        # outside the day, or never completed
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 20, 0, 0, 1), 99, critical_count=9)
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 9, 0), 0, status="failed")

        point = await aggregator.aggregate_daily(repo_id, DAY)

        assert point.scans_count == 2
        assert point.total_findings == 15
        assert point.critical_count == 4
        assert point.high_count == 10

    @pytest.mark.asyncio
    async def test_average_rounds_half_up(self, aggregator, repository, session_factory):
        repo_id = repository.repository_id
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 8, 0), 10)
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 9, 0), 11)

        assert (await aggregator.aggregate_daily(repo_id, DAY)).total_findings == 11

    @pytest.mark.asyncio
    async def test_reaggregation_updates_the_same_row(self, aggregator, repository, session_factory):
        repo_id = repository.repository_id
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 8, 0), 4)
        await aggregator.aggregate_daily(repo_id, DAY)

        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 18, 0), 8)
        point = await aggregator.aggregate_daily(repo_id, datetime(2026, 10, 19, 23, 0))

        assert point.scans_count == 2
        assert point.total_findings == 6
        trends = await aggregator.get_trends(repo_id, start=DAY, end=DAY)
        assert len(trends) == 1

    @pytest.mark.asyncio
    async def test_concurrent_aggregation_of_one_day(self, aggregator, repository, session_factory):
        repo_id = repository.repository_id
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 19, 8, 0), 7)

        points = await asyncio.gather(*(aggregator.aggregate_daily(repo_id, DAY) for _ in range(5)))

        assert {p.total_findings for p in points} == {7}
        assert len(await aggregator.get_trends(repo_id, start=DAY, end=DAY)) == 1

    @pytest.mark.asyncio
    async def test_locks_are_dropped_after_use(self, aggregator, repository):
        repo_id = repository.repository_id
        await asyncio.gather(*(aggregator.aggregate_daily(repo_id, DAY) for _ in range(3)))
        for day in range(1, 4):
            await aggregator.aggregate_daily(repo_id, date(2026, 10, day))

        assert aggregator._locks == {}
        assert aggregator._lock_users == {}

    @pytest.mark.asyncio
    async def test_day_boundaries_follow_configured_timezone(self, repository, session_factory):
        repo_id = repository.repository_id
        # 22:00 on the 19th in New York
        await _add_scan(session_factory, repo_id, _utc(2026, 10, 20, 2, 0), 5)

        new_york = TrendAggregator(session_factory, tz="America/New_York")
        utc = TrendAggregator(session_factory, tz="UTC")

        assert (await new_york.aggregate_daily(repo_id, DAY)).scans_count == 1
        assert (await utc.aggregate_daily(repo_id, DAY)).scans_count == 0


class TestComparePeriods:
    @pytest.mark.asyncio
    async def test_averages_and_changes(self, aggregator, repository, session_factory):
        repo_id = repository.repository_id
        async with session_factory() as session:
            trends = TrendRepository(session)
            await trends.upsert(repo_id, date(2026, 10, 1), total_findings=10, high_count=4, scans_count=1)
            await trends.upsert(repo_id, date(2026, 10, 2), total_findings=20, high_count=4, scans_count=1)
            await trends.upsert(repo_id, date(2026, 10, 8), total_findings=30, critical_count=2,
                                high_count=2, scans_count=1)
            await trends.upsert(repo_id, date(2026, 10, 9), total_findings=30, critical_count=2,
                                high_count=2, scans_count=1)
            await session.commit()

        comparison = await aggregator.compare_periods(
            repo_id, date(2026, 10, 1), date(2026, 10, 7), date(2026, 10, 8), date(2026, 10, 14)
        )

        assert comparison.period1.average.total_findings == 15
        assert comparison.period2.average.total_findings == 30
        assert comparison.period1.start == date(2026, 10, 1)
        assert comparison.changes["total_findings"] == 100
        assert comparison.changes["critical_count"] == 100
        assert comparison.changes["high_count"] == -50
        assert comparison.changes["info_count"] == 0

    @pytest.mark.asyncio
    async def test_empty_periods(self, aggregator, repository):
        comparison = await aggregator.compare_periods(
            repository.repository_id, date(2026, 1, 1), date(2026, 1, 7), date(2026, 1, 8), date(2026, 1, 14)
        )
        assert all(change == 0 for change in comparison.changes.values())
