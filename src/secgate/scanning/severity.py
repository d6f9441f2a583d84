"""Per-tool severity mapping onto the canonical five-level scale."""

from secgate.models.enums import Severity

# Gitleaks rule ids (substring match) that always rate as critical.
HIGH_RISK_SECRET_RULES: tuple[str, ...] = (
    "aws-access-key",
    "aws-secret-access-key",
    "private-key",
    "github-pat",
    "slack-token",
    "azure-client-secret",
    "google-api-key",
)

SECRET_ENTROPY_THRESHOLD = 8.0

_DIRECT_MAP: dict[str, Severity] = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
}


def semgrep_severity(level: str | None, security_severity: str | None = None) -> Severity:
    """``security-severity`` metadata wins; otherwise ERROR/WARNING/other."""
    if security_severity:
        normalized = str(security_severity).strip().lower()
        if normalized in ("critical", "high"):
            return Severity.HIGH
        if normalized == "medium":
            return Severity.MEDIUM
        if normalized == "low":
            return Severity.LOW

    if level == "ERROR":
        return Severity.HIGH
    if level == "WARNING":
        return Severity.MEDIUM
    return Severity.LOW


def trivy_severity(level: str | None) -> Severity:
    # UNKNOWN and anything unmapped land on info; see DESIGN.md open questions.
    return _DIRECT_MAP.get(str(level or "").lower(), Severity.INFO)


def is_high_risk_secret(rule_id: str | None) -> bool:
    rule = (rule_id or "").lower()
    return any(candidate in rule for candidate in HIGH_RISK_SECRET_RULES)


def gitleaks_severity(entropy: float | None, rule_id: str | None) -> Severity:
    """Leaked secrets are never below high."""
    if (entropy or 0.0) > SECRET_ENTROPY_THRESHOLD or is_high_risk_secret(rule_id):
        return Severity.CRITICAL
    return Severity.HIGH


def npm_audit_severity(level: str | None) -> Severity:
    normalized = str(level or "").lower()
    if normalized == "moderate":
        return Severity.MEDIUM
    return _DIRECT_MAP.get(normalized, Severity.INFO)


def bandit_severity(severity: str | None, confidence: str | None) -> Severity:
    """Combine bandit's issue severity with its confidence."""
    sev = str(severity or "").lower()
    conf = str(confidence or "").lower()

    if sev == "high" and conf == "high":
        return Severity.CRITICAL
    if sev == "high":
        return Severity.HIGH
    if sev == "medium" and conf == "high":
        return Severity.HIGH
    if sev == "medium":
        return Severity.MEDIUM
    if sev == "low" and conf == "high":
        return Severity.MEDIUM
    return Severity.LOW
