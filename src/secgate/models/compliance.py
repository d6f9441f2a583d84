"""Compliance mapping and scorecard models."""

from pydantic import BaseModel, ConfigDict, Field

from secgate.models.enums import ComplianceFramework
from secgate.models.finding import SeverityCounts


class ComplianceCategoryMapping(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    finding_id: str = Field(..., alias="findingId")
    framework: ComplianceFramework
    category: str


class ScorecardEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    title: str
    total: int = 0
    by_severity: SeverityCounts = Field(default_factory=SeverityCounts)
    finding_ids: list[str] = Field(default_factory=list)


class Scorecard(BaseModel):
    model_config = ConfigDict(extra="forbid")

    framework: str
    total_findings: int
    critical_findings: int = 0
    compliance_score: int | None = None
    entries: list[ScorecardEntry] = Field(default_factory=list)
