"""Map findings onto OWASP Top 10 (2021) and CWE Top 25 categories.

Everything here is a pure lookup over static tables. A finding always maps
to at least one OWASP category: when neither its CWE nor its rule id is
recognized it lands in A04 (Insecure Design).
"""

from __future__ import annotations

import logging
import re

from secgate.models.compliance import ComplianceCategoryMapping
from secgate.models.enums import ComplianceFramework, FindingCategory
from secgate.models.finding import NormalizedFinding, normalize_cwe

logger = logging.getLogger(__name__)

OWASP_TOP_10_2021: dict[str, str] = {
    "A01:2021": "Broken Access Control",
    "A02:2021": "Cryptographic Failures",
    "A03:2021": "Injection",
    "A04:2021": "Insecure Design",
    "A05:2021": "Security Misconfiguration",
    "A06:2021": "Vulnerable and Outdated Components",
    "A07:2021": "Identification and Authentication Failures",
    "A08:2021": "Software and Data Integrity Failures",
    "A09:2021": "Security Logging and Monitoring Failures",
    "A10:2021": "Server-Side Request Forgery (SSRF)",
}

DEFAULT_OWASP_CATEGORY = "A04:2021"

CWE_TO_OWASP: dict[str, tuple[str, ...]] = {
    # Injection
    "CWE-79": ("A03:2021",),
    "CWE-89": ("A03:2021",),
    "CWE-78": ("A03:2021",),
    "CWE-20": ("A03:2021",),
    "CWE-74": ("A03:2021",),
    "CWE-117": ("A03:2021",),
    # Broken access control
    "CWE-284": ("A01:2021",),
    "CWE-285": ("A01:2021",),
    "CWE-352": ("A01:2021",),
    "CWE-639": ("A01:2021",),
    # Cryptographic failures
    "CWE-327": ("A02:2021",),
    "CWE-326": ("A02:2021",),
    "CWE-295": ("A02:2021",),
    "CWE-798": ("A02:2021",),
    # Vulnerable components
    "CWE-1104": ("A06:2021",),
    # Misconfiguration
    "CWE-16": ("A05:2021",),
    "CWE-200": ("A05:2021",),
    "CWE-209": ("A05:2021",),
    # Authentication
    "CWE-287": ("A07:2021",),
    "CWE-306": ("A07:2021",),
    "CWE-521": ("A07:2021",),
    "CWE-308": ("A07:2021",),
    # Integrity
    "CWE-345": ("A08:2021",),
    "CWE-494": ("A08:2021",),
    "CWE-502": ("A08:2021",),
    # Logging
    "CWE-778": ("A09:2021",),
    # SSRF
    "CWE-918": ("A10:2021",),
}

# Patterns are tried as a substring first, then as a regex.
TOOL_RULE_TO_OWASP: dict[str, dict[str, tuple[str, ...]]] = {
    "semgrep": {
        "python.lang.security.insecure-temp-file": ("A05:2021",),
        "python.lang.security.audit.hardcoded-password": ("A02:2021",),
        "python.lang.security.audit.sql_injection": ("A03:2021",),
        "javascript.lang.security.audit.xss": ("A03:2021",),
        "java.lang.security.audit.insecure-deserialization": ("A08:2021",),
    },
    "gitleaks": {
        "aws-access-key": ("A02:2021",),
        "private-key": ("A02:2021",),
        "api-key": ("A02:2021",),
    },
    "trivy": {
        "vulnerability": ("A06:2021",),
        "misconfiguration": ("A05:2021",),
    },
}

# Trivy rule ids are CVE/AVD ids, so its table is keyed on the finding kind.
_TRIVY_KIND = {
    FindingCategory.SCA: "vulnerability",
    FindingCategory.IAC: "misconfiguration",
}

CWE_TOP_25: dict[str, str] = {
    "CWE-79": "Cross-site Scripting",
    "CWE-89": "SQL Injection",
    "CWE-20": "Improper Input Validation",
    "CWE-352": "Cross-site Request Forgery",
    "CWE-78": "OS Command Injection",
    "CWE-798": "Use of Hard-coded Credentials",
    "CWE-502": "Deserialization of Untrusted Data",
    "CWE-434": "Unrestricted Upload of File",
    "CWE-862": "Missing Authorization",
    "CWE-476": "NULL Pointer Dereference",
}


def _rule_matches(pattern: str, rule_id: str) -> bool:
    if pattern in rule_id:
        return True
    try:
        return re.search(pattern, rule_id) is not None
    except re.error:
        return False


def map_to_owasp(cwe: str | None = None, tool: str | None = None, rule_id: str | None = None) -> list[str]:
    """OWASP Top 10 codes for a finding, in discovery order, never empty."""
    categories: dict[str, None] = {}

    if cwe:
        for category in CWE_TO_OWASP.get(cwe.upper().strip(), ()):
            categories[category] = None

    if tool and rule_id:
        for pattern, codes in TOOL_RULE_TO_OWASP.get(tool, {}).items():
            if _rule_matches(pattern, rule_id):
                for category in codes:
                    categories[category] = None

    if not categories:
        categories[DEFAULT_OWASP_CATEGORY] = None
    return list(categories)


def map_to_framework(cwe: str | None = None, tool: str | None = None, rule_id: str | None = None) -> set[str]:
    return set(map_to_owasp(cwe, tool, rule_id))


def map_to_cwe_top25(cwe: str | None) -> str | None:
    """The CWE Top 25 code for ``cwe``, or None when it is not on the list."""
    code = normalize_cwe(cwe)
    return code if code in CWE_TOP_25 else None


def category_description(category: str) -> str:
    return OWASP_TOP_10_2021.get(category, "Unknown")


def owasp_categories_for(finding: NormalizedFinding) -> list[str]:
    categories = map_to_owasp(finding.cwe, finding.tool, finding.rule_id)
    kind = _TRIVY_KIND.get(finding.category) if finding.tool == "trivy" else None
    if kind:
        extra = [c for c in map_to_owasp(None, "trivy", kind) if c not in categories]
        if categories == [DEFAULT_OWASP_CATEGORY]:
            categories = []
        categories.extend(extra)
    return categories


def mappings_for_finding(finding_id: str, finding: NormalizedFinding) -> list[ComplianceCategoryMapping]:
    """All compliance mappings for one persisted finding, duplicates removed."""
    seen: set[tuple[str, str]] = set()
    mappings: list[ComplianceCategoryMapping] = []

    def add(framework: ComplianceFramework, category: str) -> None:
        if (framework, category) in seen:
            return
        seen.add((framework, category))
        mappings.append(
            ComplianceCategoryMapping(finding_id=finding_id, framework=framework, category=category)
        )

    for category in owasp_categories_for(finding):
        add(ComplianceFramework.OWASP_TOP10, category)

    top25 = map_to_cwe_top25(finding.cwe)
    if top25:
        add(ComplianceFramework.CWE_TOP25, top25)

    return mappings
