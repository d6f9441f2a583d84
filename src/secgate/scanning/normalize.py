"""Conversion of raw tool reports into :class:`NormalizedFinding` lists.

The orchestrator never looks inside a tool's native JSON; it hands whatever
an adapter produced to :func:`normalize`, which dispatches on the report type.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from secgate.models.enums import FindingCategory
from secgate.models.finding import NormalizedFinding
from secgate.scanning.reports import (
    BanditReport,
    GitleaksReport,
    NpmAuditReport,
    RawToolResult,
    SemgrepReport,
    TrivyReport,
)
from secgate.scanning.severity import (
    bandit_severity,
    gitleaks_severity,
    npm_audit_severity,
    semgrep_severity,
    trivy_severity,
)

logger = logging.getLogger(__name__)


def _first(value: Any) -> Any:
    """First element of a list, the value itself for scalars, None for empties."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _relative(path: str | None) -> str | None:
    if path and path.startswith("./"):
        return path[2:]
    return path


# ---------------------------------------------------------------------------
# Semgrep
# ---------------------------------------------------------------------------


def _semgrep_finding(raw: dict) -> NormalizedFinding:
    check_id = raw.get("check_id") or ""
    path = _relative(raw.get("path"))
    line = (raw.get("start") or {}).get("line")
    extra = raw.get("extra") or {}
    metadata = extra.get("metadata") or {}

    return NormalizedFinding(
        tool="semgrep",
        category=FindingCategory.SAST,
        severity=semgrep_severity(extra.get("severity"), metadata.get("security-severity")),
        rule_id=check_id or None,
        title=check_id.split(".")[-1] or "Security Issue",
        file=path,
        line=line,
        cwe=_first(metadata.get("cwe")),
        message=extra.get("message"),
        fingerprint=f"semgrep:{check_id}:{path}:{line}",
    )


def normalize_semgrep(report: SemgrepReport) -> list[NormalizedFinding]:
    return _collect(report, report.results, _semgrep_finding)


# ---------------------------------------------------------------------------
# Trivy
# ---------------------------------------------------------------------------


def _trivy_cvss(cvss: dict | None) -> float | None:
    """First V3 score across CVSS sources (nvd, ghsa, redhat, ...)."""
    for source in (cvss or {}).values():
        score = (source or {}).get("V3Score")
        if score is not None:
            try:
                return float(score)
            except (TypeError, ValueError):
                continue
    return None


def normalize_trivy(report: TrivyReport) -> list[NormalizedFinding]:
    findings: list[NormalizedFinding] = []

    for result in report.vulnerability_results:
        target = result.get("Target", "unknown")
        for vuln in result.get("Vulnerabilities") or []:
            vuln_id = vuln.get("VulnerabilityID", "")
            try:
                findings.append(NormalizedFinding(
                    tool="trivy",
                    category=FindingCategory.SCA,
                    severity=trivy_severity(vuln.get("Severity")),
                    rule_id=vuln_id or None,
                    title=vuln.get("Title") or vuln_id or "Untitled Trivy Vulnerability",
                    file=target,
                    cwe=_first(vuln.get("CweIDs")),
                    cvss=_trivy_cvss(vuln.get("CVSS")),
                    message=vuln.get("Description"),
                    fingerprint=f"trivy:{target}:{vuln_id}:{vuln.get('PkgName', '')}",
                ))
            except ValueError:
                logger.warning("Failed to normalize Trivy vulnerability %s, skipping", vuln_id, exc_info=True)

    for result in report.misconfiguration_results:
        target = result.get("Target", "unknown")
        for misconfig in result.get("Misconfigurations") or []:
            if misconfig.get("Status") != "FAIL":
                continue
            meta = misconfig.get("CauseMetadata") or misconfig.get("IacMetadata") or {}
            check_id = misconfig.get("ID", "")
            try:
                findings.append(NormalizedFinding(
                    tool="trivy",
                    category=FindingCategory.IAC,
                    severity=trivy_severity(misconfig.get("Severity")),
                    rule_id=check_id or None,
                    title=misconfig.get("Title") or check_id or "Untitled Trivy Misconfiguration",
                    file=target,
                    line=meta.get("StartLine"),
                    message=misconfig.get("Message"),
                    fingerprint=f"trivy-iac:{target}:{check_id}:{meta.get('Resource', '')}",
                ))
            except ValueError:
                logger.warning("Failed to normalize Trivy misconfiguration %s, skipping", check_id, exc_info=True)

    return findings


# ---------------------------------------------------------------------------
# Gitleaks
# ---------------------------------------------------------------------------


def _redact(match: str, secret: str | None) -> str:
    if secret:
        match = match.replace(secret, secret[:4] + "****" if len(secret) > 8 else "****")
    return match[:50]


def _gitleaks_finding(raw: dict) -> NormalizedFinding:
    rule_id = raw.get("RuleID")
    description = raw.get("Description") or rule_id or "secret"
    path = raw.get("File")
    line = raw.get("StartLine")
    snippet = _redact(raw.get("Match") or "", raw.get("Secret"))

    return NormalizedFinding(
        tool="gitleaks",
        category=FindingCategory.SECRETS,
        severity=gitleaks_severity(raw.get("Entropy"), rule_id),
        rule_id=rule_id,
        title=f"Exposed {description}",
        file=path,
        line=line,
        message=(
            f"Secret detected: {description}. This {snippet}... "
            "should not be committed to version control."
        ),
        fingerprint=f"gitleaks:{path}:{rule_id}:{line}",
    )


def normalize_gitleaks(report: GitleaksReport) -> list[NormalizedFinding]:
    return _collect(report, report.leaks, _gitleaks_finding)


# ---------------------------------------------------------------------------
# npm audit
# ---------------------------------------------------------------------------


def normalize_npm_audit(report: NpmAuditReport) -> list[NormalizedFinding]:
    findings: list[NormalizedFinding] = []

    for package_name, vuln in report.vulnerabilities.items():
        via = (vuln or {}).get("via") or []
        primary = via[0] if via else None
        # A string entry only names the dependency path to another advisory.
        if not isinstance(primary, dict):
            continue

        advisory_title = primary.get("title")
        version_range = vuln.get("range")
        cvss = (primary.get("cvss") or {}).get("score") or None
        message = f"Vulnerability in {package_name}"
        if version_range:
            message += f" ({version_range})"
        message += f". {primary.get('url') or ''}".rstrip()

        try:
            findings.append(NormalizedFinding(
                tool="npm-audit",
                category=FindingCategory.SCA,
                severity=npm_audit_severity(primary.get("severity") or vuln.get("severity")),
                rule_id=advisory_title or package_name,
                title=f"{package_name}: {advisory_title or 'Known vulnerability'}",
                file="package.json",
                cwe=_first(primary.get("cwe")),
                cvss=cvss,
                message=message,
                fingerprint=f"npm-audit:{package_name}:{advisory_title or 'vuln'}",
            ))
        except ValueError:
            logger.warning("Failed to normalize npm audit entry %s, skipping", package_name, exc_info=True)

    return findings


# ---------------------------------------------------------------------------
# Bandit
# ---------------------------------------------------------------------------


def _bandit_finding(raw: dict) -> NormalizedFinding:
    issue_cwe = raw.get("issue_cwe") or {}
    path = _relative(raw.get("filename"))
    test_id = raw.get("test_id")
    line = raw.get("line_number")

    return NormalizedFinding(
        tool="bandit",
        category=FindingCategory.SAST,
        severity=bandit_severity(raw.get("issue_severity"), raw.get("issue_confidence")),
        rule_id=test_id,
        title=raw.get("test_name") or test_id or "Bandit Issue",
        file=path,
        line=line,
        cwe=f"CWE-{issue_cwe['id']}" if issue_cwe.get("id") else None,
        message=raw.get("issue_text"),
        fingerprint=f"bandit:{path}:{test_id}:{line}",
    )


def normalize_bandit(report: BanditReport) -> list[NormalizedFinding]:
    return _collect(report, report.results, _bandit_finding)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def _collect(
    report: RawToolResult,
    entries: list[dict],
    convert: Callable[[dict], NormalizedFinding],
) -> list[NormalizedFinding]:
    findings: list[NormalizedFinding] = []
    for raw in entries:
        try:
            findings.append(convert(raw))
        except (ValueError, TypeError, AttributeError):
            logger.warning("Failed to normalize %s entry, skipping", report.tool, exc_info=True)
    return findings


_NORMALIZERS: dict[type[RawToolResult], Callable[[Any], list[NormalizedFinding]]] = {
    SemgrepReport: normalize_semgrep,
    TrivyReport: normalize_trivy,
    GitleaksReport: normalize_gitleaks,
    NpmAuditReport: normalize_npm_audit,
    BanditReport: normalize_bandit,
}


def normalize(report: RawToolResult) -> list[NormalizedFinding]:
    """Convert one tool's raw report into normalized findings."""
    normalizer = _NORMALIZERS.get(type(report))
    if normalizer is None:
        raise TypeError(f"No normalizer registered for {type(report).__name__}")
    return normalizer(report)
