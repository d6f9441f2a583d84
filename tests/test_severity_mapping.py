"""Per-tool severity mapping onto the five-level scale."""

import pytest

from secgate.models.enums import Severity
from secgate.scanning.severity import (
    bandit_severity,
    gitleaks_severity,
    is_high_risk_secret,
    npm_audit_severity,
    semgrep_severity,
    trivy_severity,
)


class TestSemgrep:
    @pytest.mark.parametrize("level,expected", [
        ("ERROR", Severity.HIGH),
        ("WARNING", Severity.MEDIUM),
        ("INFO", Severity.LOW),
        (None, Severity.LOW),
    ])
    def test_level(self, level, expected):
        assert semgrep_severity(level) == expected

    def test_security_severity_overrides_level(self):
        assert semgrep_severity("INFO", "CRITICAL") == Severity.HIGH
        assert semgrep_severity("ERROR", "Medium") == Severity.MEDIUM
        assert semgrep_severity("ERROR", "low") == Severity.LOW

    def test_unrecognized_security_severity_falls_back_to_level(self):
        assert semgrep_severity("WARNING", "bogus") == Severity.MEDIUM

    def test_never_critical(self):
        assert semgrep_severity("ERROR", "critical") != Severity.CRITICAL


class TestTrivy:
    @pytest.mark.parametrize("level,expected", [
        ("CRITICAL", Severity.CRITICAL),
        ("HIGH", Severity.HIGH),
        ("MEDIUM", Severity.MEDIUM),
        ("LOW", Severity.LOW),
        ("UNKNOWN", Severity.INFO),
        (None, Severity.INFO),
    ])
    def test_levels(self, level, expected):
        assert trivy_severity(level) == expected


class TestGitleaks:
    def test_high_entropy_is_critical(self):
        assert gitleaks_severity(8.5, "generic-api-key") == Severity.CRITICAL

    def test_threshold_is_exclusive(self):
        assert gitleaks_severity(8.0, "generic-api-key") == Severity.HIGH

    def test_high_risk_rule_is_critical(self):
        assert gitleaks_severity(3.0, "aws-access-key-id") == Severity.CRITICAL
        assert gitleaks_severity(None, "PRIVATE-KEY") == Severity.CRITICAL

    def test_everything_else_is_high(self):
        assert gitleaks_severity(None, None) == Severity.HIGH
        assert gitleaks_severity(4.2, "generic-api-key") == Severity.HIGH

    def test_high_risk_rule_is_substring_match(self):
        assert is_high_risk_secret("my-github-pat-rule")
        assert not is_high_risk_secret("jwt")


class TestNpmAudit:
    @pytest.mark.parametrize("level,expected", [
        ("critical", Severity.CRITICAL),
        ("high", Severity.HIGH),
        ("moderate", Severity.MEDIUM),
        ("low", Severity.LOW),
        ("info", Severity.INFO),
        ("whatever", Severity.INFO),
    ])
    def test_levels(self, level, expected):
        assert npm_audit_severity(level) == expected


class TestBandit:
    @pytest.mark.parametrize("severity,confidence,expected", [
        ("HIGH", "HIGH", Severity.CRITICAL),
        ("HIGH", "MEDIUM", Severity.HIGH),
        ("HIGH", "LOW", Severity.HIGH),
        ("MEDIUM", "HIGH", Severity.HIGH),
        ("MEDIUM", "MEDIUM", Severity.MEDIUM),
        ("MEDIUM", "LOW", Severity.MEDIUM),
        ("LOW", "HIGH", Severity.MEDIUM),
        ("LOW", "MEDIUM", Severity.LOW),
        ("LOW", "LOW", Severity.LOW),
        (None, None, Severity.LOW),
    ])
    def test_matrix(self, severity, confidence, expected):
        assert bandit_severity(severity, confidence) == expected
