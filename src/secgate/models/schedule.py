"""Pydantic models for scheduled scans."""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from secgate.models.enums import ScheduleType


class ScheduleConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    hour: int = Field(2, ge=0, le=23)
    minute: int = Field(0, ge=0, le=59)
    day_of_week: int | None = Field(None, ge=0, le=6, alias="dayOfWeek")  # 0 = Sunday
    day_of_month: int | None = Field(None, ge=1, le=31, alias="dayOfMonth")


def validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone '{value}'") from exc
    return value


class ScheduleCreate(BaseModel):
    """Request body for creating a schedule (server generates ID and run times)."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    repository_id: str = Field(..., min_length=1, alias="repositoryRef")
    schedule_type: ScheduleType = Field(..., alias="scheduleType")
    config: ScheduleConfig = Field(default_factory=ScheduleConfig)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        return validate_timezone(value)


class ScheduleUpdate(BaseModel):
    """Partial update of a schedule; config fields merge over the stored config."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    hour: int | None = Field(None, ge=0, le=23)
    minute: int | None = Field(None, ge=0, le=59)
    day_of_week: int | None = Field(None, ge=0, le=6, alias="dayOfWeek")
    day_of_month: int | None = Field(None, ge=1, le=31, alias="dayOfMonth")
    is_enabled: bool | None = Field(None, alias="isEnabled")

    def config_changes(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"is_enabled"})


class ScheduleDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, from_attributes=True)

    schedule_id: str = Field(..., alias="id")
    repository_id: str = Field(..., alias="repositoryRef")
    schedule_type: ScheduleType = Field(..., alias="scheduleType")
    config: ScheduleConfig
    timezone: str = "UTC"
    is_enabled: bool = Field(True, alias="isEnabled")
    next_run_at: datetime | None = Field(None, alias="nextRunAt")
    last_run_at: datetime | None = Field(None, alias="lastRunAt")
