"""Compliance scorecards over a set of persisted findings.

``findings`` are any objects with ``finding_id``, ``severity`` and ``cwe``
attributes (ORM rows in practice); ``mappings`` are the stored
:class:`ComplianceCategoryMapping` values for those findings.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from secgate.compliance.mapper import CWE_TOP_25, OWASP_TOP_10_2021
from secgate.models.compliance import ComplianceCategoryMapping, Scorecard, ScorecardEntry
from secgate.models.enums import ComplianceFramework, Severity
from secgate.models.finding import SeverityCounts

PREVIEW_LIMIT = 10


def compliance_score(total: int, critical: int) -> int:
    """100 for a clean run, minus 10 per critical finding, floored at 0."""
    if total == 0:
        return 100
    return max(0, 100 - critical * 10)


def _categories_by_finding(
    mappings: Iterable[ComplianceCategoryMapping],
    framework: ComplianceFramework,
) -> dict[str, set[str]]:
    index: dict[str, set[str]] = defaultdict(set)
    for mapping in mappings:
        if mapping.framework == framework:
            index[mapping.finding_id].add(mapping.category)
    return index


def _entry(code: str, title: str, matched: list) -> ScorecardEntry:
    counts = {str(s): 0 for s in Severity}
    for finding in matched:
        counts[str(finding.severity)] += 1
    return ScorecardEntry(
        code=code,
        title=title,
        total=len(matched),
        by_severity=SeverityCounts(**counts),
        finding_ids=[f.finding_id for f in matched[:PREVIEW_LIMIT]],
    )


def owasp_scorecard(findings: Sequence, mappings: Iterable[ComplianceCategoryMapping]) -> Scorecard:
    index = _categories_by_finding(mappings, ComplianceFramework.OWASP_TOP10)
    entries = []
    for code, title in OWASP_TOP_10_2021.items():
        matched = [f for f in findings if code in index.get(f.finding_id, ())]
        entries.append(_entry(code, title, matched))

    critical = sum(1 for f in findings if f.severity == Severity.CRITICAL)
    return Scorecard(
        framework="OWASP Top 10 2021",
        total_findings=len(findings),
        critical_findings=critical,
        compliance_score=compliance_score(len(findings), critical),
        entries=entries,
    )


def cwe_top25_scorecard(findings: Sequence, mappings: Iterable[ComplianceCategoryMapping]) -> Scorecard:
    """Only findings that carry a CWE are considered."""
    with_cwe = [f for f in findings if f.cwe]
    index = _categories_by_finding(mappings, ComplianceFramework.CWE_TOP25)
    entries = []
    for code, title in CWE_TOP_25.items():
        matched = [
            f for f in with_cwe
            if f.cwe == code or code in index.get(f.finding_id, ())
        ]
        entries.append(_entry(code, title, matched))

    return Scorecard(
        framework="CWE Top 25",
        total_findings=len(with_cwe),
        critical_findings=sum(1 for f in with_cwe if f.severity == Severity.CRITICAL),
        entries=entries,
    )
