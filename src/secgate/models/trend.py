"""Trend aggregation models."""

from datetime import date

from pydantic import BaseModel, ConfigDict


class TrendCounts(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    total_findings: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    info_count: int = 0


TREND_BUCKETS: tuple[str, ...] = tuple(TrendCounts.model_fields)


class TrendPoint(TrendCounts):
    repository_id: str
    date: date
    scans_count: int = 0


class PeriodAverage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start: date
    end: date
    average: TrendCounts


class PeriodComparison(BaseModel):
    """``changes`` holds integer percentage change per bucket, period1 -> period2."""

    model_config = ConfigDict(extra="forbid")

    period1: PeriodAverage
    period2: PeriodAverage
    changes: dict[str, int]
