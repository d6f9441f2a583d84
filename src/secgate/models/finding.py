"""Pydantic models for normalized findings and scan payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from secgate.models.enums import FindingCategory, Severity


class NormalizedFinding(BaseModel):
    """Tool-agnostic representation of one security issue.

    Created once per adapter invocation and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    tool: str
    category: FindingCategory | None = None
    severity: Severity
    rule_id: str | None = Field(None, alias="ruleId")
    title: str
    file: str | None = None
    line: int | None = None
    cwe: str | None = None
    cvss: float | None = Field(None, ge=0.0, le=10.0)
    message: str | None = None
    fingerprint: str | None = None

    @field_validator("cwe", mode="before")
    @classmethod
    def _normalize_cwe(cls, value):
        return normalize_cwe(value)


def normalize_cwe(value) -> str | None:
    """Coerce CWE references ("CWE-79: XSS", "79", 79) to ``CWE-<n>``."""
    if value is None:
        return None
    text = str(value).strip().upper()
    if not text:
        return None
    if text.startswith("CWE-"):
        head = text[4:]
    else:
        head = text
    digits = ""
    for ch in head:
        if not ch.isdigit():
            break
        digits += ch
    return f"CWE-{digits}" if digits else text


class SeverityCounts(BaseModel):
    model_config = ConfigDict(extra="forbid")

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    info: int = 0

    def get(self, severity: Severity | str) -> int:
        return getattr(self, str(severity))

    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low + self.info


class ScanSummary(BaseModel):
    """Aggregate over a set of findings; recomputed whenever the findings change."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    total: int = 0
    by_severity: SeverityCounts = Field(default_factory=SeverityCounts, alias="bySeverity")
    by_tool: dict[str, int] = Field(default_factory=dict, alias="byTool")

    @classmethod
    def from_findings(cls, findings: list[NormalizedFinding]) -> "ScanSummary":
        counts = {str(s): 0 for s in Severity}
        by_tool: dict[str, int] = {}
        for finding in findings:
            counts[str(finding.severity)] += 1
            by_tool[finding.tool] = by_tool.get(finding.tool, 0) + 1
        return cls(
            total=len(findings),
            by_severity=SeverityCounts(**counts),
            by_tool=by_tool,
        )


class ScanMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    timestamp: datetime
    repository: str
    branch: str
    commit: str
    triggered_by: str = Field(..., alias="triggeredBy")


class ScanPayload(BaseModel):
    """Result of one orchestrator run, handed to persistence/notification.

    When findings are present the summary is always recomputed from them.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    metadata: ScanMetadata
    summary: ScanSummary
    findings: list[NormalizedFinding] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _summary_from_findings(self) -> "ScanPayload":
        # A payload carrying only a summary is gated as given.
        if self.findings:
            self.summary = ScanSummary.from_findings(self.findings)
        return self
