"""Security gate evaluation for CI/CD pipelines.

:func:`evaluate_gate` turns a scan summary into a passed/warning/failed
decision. Checks run in a fixed order and the first one that trips wins:
block flags, then hard critical/high thresholds, then advisory
medium/low thresholds, then per-tool overrides.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pydantic

from secgate.errors.exceptions import ValidationError
from secgate.models.enums import GateStatus, Severity
from secgate.models.finding import ScanSummary
from secgate.models.policy import GateDecision, SecurityGatePolicy

logger = logging.getLogger(__name__)

DEFAULT_POLICY = SecurityGatePolicy()

_BLOCK_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


def _described(count: int, severity: Severity) -> str:
    if severity == Severity.CRITICAL:
        return f"{count} critical finding(s)"
    return f"{count} {severity} severity finding(s)"


def _failed(reason: str) -> GateDecision:
    return GateDecision(status=GateStatus.FAILED, reason=f"Gate failed: {reason}")


def _warning(reason: str) -> GateDecision:
    return GateDecision(status=GateStatus.WARNING, reason=f"Gate warning: {reason}")


def evaluate_gate(summary: ScanSummary, policy: SecurityGatePolicy = DEFAULT_POLICY) -> GateDecision:
    counts = summary.by_severity

    for severity in _BLOCK_ORDER:
        count = counts.get(severity)
        if getattr(policy, f"block_on_{severity}") and count > 0:
            return _failed(f"{_described(count, severity)} detected (blocking enabled)")

    for severity in (Severity.CRITICAL, Severity.HIGH):
        count, limit = counts.get(severity), getattr(policy, f"max_{severity}")
        if count > limit:
            return _failed(f"{_described(count, severity)} exceeds threshold of {limit}")

    # Medium/low overflow is advisory only.
    for severity in (Severity.MEDIUM, Severity.LOW):
        count, limit = counts.get(severity), getattr(policy, f"max_{severity}")
        if count > limit:
            return _warning(f"{_described(count, severity)} exceeds threshold of {limit}")

    for tool, tool_policy in policy.tool_policies.items():
        count = summary.by_tool.get(tool, 0)
        if tool_policy.block_on_any and count > 0:
            return _failed(f"{count} finding(s) from {tool} (blocking enabled for this tool)")
        if tool_policy.max_findings is not None and count > tool_policy.max_findings:
            return _failed(
                f"{count} finding(s) from {tool} exceeds threshold of {tool_policy.max_findings}"
            )

    return GateDecision(status=GateStatus.PASSED, reason="All security gate checks passed")


def create_policy(**overrides: Any) -> SecurityGatePolicy:
    """The default policy with ``overrides`` applied (snake_case or camelCase keys)."""
    aliases = {name: field.alias or name for name, field in SecurityGatePolicy.model_fields.items()}
    merged = DEFAULT_POLICY.model_dump(by_alias=True)
    merged.update({aliases.get(key, key): value for key, value in overrides.items()})
    try:
        return SecurityGatePolicy.model_validate(merged)
    except pydantic.ValidationError as exc:
        raise ValidationError("Invalid security gate policy", details=exc.errors()) from exc


def load_policy(path: str | Path | None = None) -> SecurityGatePolicy:
    """Read a policy from a JSON file; the default policy when ``path`` is None."""
    if path is None:
        return DEFAULT_POLICY
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValidationError(f"Cannot read policy file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Policy file {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ValidationError(f"Policy file {path} must contain a JSON object")

    policy = create_policy(**document)
    logger.info("Loaded security gate policy from %s", path)
    return policy
