"""Security gate evaluation and policy loading."""

import json

import pytest

from secgate.errors.exceptions import ValidationError
from secgate.gate.policy_engine import DEFAULT_POLICY, create_policy, evaluate_gate, load_policy
from secgate.models.enums import GateStatus
from secgate.models.finding import ScanSummary, SeverityCounts


def _summary(by_tool: dict[str, int] | None = None, **counts: int) -> ScanSummary:
    severity = SeverityCounts(**counts)
    return ScanSummary(total=severity.total(), by_severity=severity, by_tool=by_tool or {})


class TestDefaultPolicy:
    def test_defaults(self):
        assert DEFAULT_POLICY.block_on_critical is True
        assert DEFAULT_POLICY.block_on_high is True
        assert DEFAULT_POLICY.block_on_medium is False
        assert DEFAULT_POLICY.block_on_low is False
        assert (DEFAULT_POLICY.max_critical, DEFAULT_POLICY.max_high) == (0, 0)
        assert (DEFAULT_POLICY.max_medium, DEFAULT_POLICY.max_low) == (50, 100)
        assert DEFAULT_POLICY.tool_policies == {}

    def test_clean_scan_passes(self):
        decision = evaluate_gate(_summary())
        assert decision.status == GateStatus.PASSED
        assert decision.reason == "All security gate checks passed"

    def test_critical_blocks(self):
        decision = evaluate_gate(_summary(critical=1))
        assert decision.status == GateStatus.FAILED
        assert decision.reason == "Gate failed: 1 critical finding(s) detected (blocking enabled)"

    def test_high_blocks(self):
        decision = evaluate_gate(_summary(high=2, medium=3))
        assert decision.status == GateStatus.FAILED
        assert decision.reason == "Gate failed: 2 high severity finding(s) detected (blocking enabled)"

    def test_critical_checked_before_high(self):
        decision = evaluate_gate(_summary(critical=1, high=5))
        assert "critical" in decision.reason

    def test_medium_over_threshold_warns(self):
        decision = evaluate_gate(_summary(medium=60))
        assert decision.status == GateStatus.WARNING
        assert decision.reason == "Gate warning: 60 medium severity finding(s) exceeds threshold of 50"

    def test_medium_at_threshold_passes(self):
        assert evaluate_gate(_summary(medium=50)).status == GateStatus.PASSED

    def test_low_over_threshold_warns(self):
        decision = evaluate_gate(_summary(low=101))
        assert decision.status == GateStatus.WARNING
        assert decision.reason == "Gate warning: 101 low severity finding(s) exceeds threshold of 100"

    def test_info_never_gates(self):
        assert evaluate_gate(_summary(info=10_000)).status == GateStatus.PASSED


class TestCustomPolicy:
    def test_within_thresholds_passes(self):
        policy = create_policy(blockOnHigh=False, maxHigh=10)
        decision = evaluate_gate(_summary(high=10, medium=10), policy)
        assert decision.status == GateStatus.PASSED

    def test_high_threshold(self):
        policy = create_policy(block_on_high=False, max_high=5)
        decision = evaluate_gate(_summary(high=6), policy)
        assert decision.status == GateStatus.FAILED
        assert decision.reason == "Gate failed: 6 high severity finding(s) exceeds threshold of 5"

    def test_critical_threshold(self):
        policy = create_policy(blockOnCritical=False)
        decision = evaluate_gate(_summary(critical=1), policy)
        assert decision.reason == "Gate failed: 1 critical finding(s) exceeds threshold of 0"

    def test_block_on_medium(self):
        policy = create_policy(blockOnMedium=True)
        decision = evaluate_gate(_summary(medium=1), policy)
        assert decision.status == GateStatus.FAILED
        assert decision.reason == "Gate failed: 1 medium severity finding(s) detected (blocking enabled)"

    def test_tool_block_on_any(self):
        policy = create_policy(toolPolicies={"gitleaks": {"blockOnAny": True}})
        decision = evaluate_gate(_summary(low=1, by_tool={"gitleaks": 1}), policy)
        assert decision.status == GateStatus.FAILED
        assert decision.reason == "Gate failed: 1 finding(s) from gitleaks (blocking enabled for this tool)"

    def test_tool_max_findings(self):
        policy = create_policy(toolPolicies={"semgrep": {"maxFindings": 2}})
        decision = evaluate_gate(_summary(medium=3, by_tool={"semgrep": 3}), policy)
        assert decision.reason == "Gate failed: 3 finding(s) from semgrep exceeds threshold of 2"

    def test_tool_policy_for_absent_tool(self):
        policy = create_policy(toolPolicies={"trivy": {"blockOnAny": True}})
        assert evaluate_gate(_summary(low=1, by_tool={"bandit": 1}), policy).status == GateStatus.PASSED

    def test_severity_warning_wins_over_tool_override(self):
        policy = create_policy(toolPolicies={"semgrep": {"blockOnAny": True}})
        decision = evaluate_gate(_summary(medium=51, by_tool={"semgrep": 51}), policy)
        assert decision.status == GateStatus.WARNING

    def test_policy_is_frozen(self):
        with pytest.raises(ValueError):
            DEFAULT_POLICY.block_on_high = False


class TestCreatePolicy:
    def test_mixed_key_styles(self):
        policy = create_policy(block_on_high=False, maxMedium=5)
        assert policy.block_on_high is False
        assert policy.max_medium == 5
        assert policy.block_on_critical is True

    @pytest.mark.parametrize("overrides", [
        {"max_high": -1},
        {"maxLow": "lots"},
        {"blockOnEverything": True},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValidationError):
            create_policy(**overrides)


class TestLoadPolicy:
    def test_default_when_unset(self):
        assert load_policy(None) is DEFAULT_POLICY

    def test_from_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"blockOnHigh": False, "maxHigh": 3}))
        policy = load_policy(path)
        assert policy.block_on_high is False
        assert policy.max_high == 3

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]", '{"maxCritical": -5}'])
    def test_invalid_file(self, tmp_path, content):
        path = tmp_path / "policy.json"
        path.write_text(content)
        with pytest.raises(ValidationError):
            load_policy(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError):
            load_policy(tmp_path / "absent.json")
