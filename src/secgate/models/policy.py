"""Security gate policy and decision models."""

from pydantic import BaseModel, ConfigDict, Field

from secgate.models.enums import GateStatus


class ToolPolicy(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    block_on_any: bool | None = Field(None, alias="blockOnAny")
    max_findings: int | None = Field(None, ge=0, alias="maxFindings")


class SecurityGatePolicy(BaseModel):
    """Immutable per evaluation."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    block_on_critical: bool = Field(True, alias="blockOnCritical")
    block_on_high: bool = Field(True, alias="blockOnHigh")
    block_on_medium: bool = Field(False, alias="blockOnMedium")
    block_on_low: bool = Field(False, alias="blockOnLow")

    max_critical: int = Field(0, ge=0, alias="maxCritical")
    max_high: int = Field(0, ge=0, alias="maxHigh")
    max_medium: int = Field(50, ge=0, alias="maxMedium")
    max_low: int = Field(100, ge=0, alias="maxLow")

    tool_policies: dict[str, ToolPolicy] = Field(default_factory=dict, alias="toolPolicies")


class GateDecision(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    status: GateStatus
    reason: str
