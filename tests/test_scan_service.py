"""Persisting scans: findings, compliance mappings, notifications, scheduled runs."""

from datetime import datetime, timezone

import pytest

from secgate.errors.exceptions import NotFoundError, ScanFailedError, ValidationError
from secgate.models.compliance import ComplianceCategoryMapping
from secgate.models.enums import ComplianceFramework, FindingCategory, GateStatus, ScanStatus, ScheduleType
from secgate.models.finding import NormalizedFinding, ScanMetadata, ScanPayload, ScanSummary
from secgate.models.schedule import ScheduleConfig, ScheduleDefinition
from secgate.repositories.compliance_repo import ComplianceMappingRepository
from secgate.repositories.finding_repo import FindingRepository
from secgate.repositories.scan_repo import ScanRepository
from secgate.services.scan_service import ScanService, make_scan_runner

FINDINGS = [
    NormalizedFinding(
        tool="semgrep", category=FindingCategory.SAST, severity="high", title="sql-injection",
        rule_id="python.lang.security.audit.sql_injection.raw-query", file="app/db.py", line=12, cwe="CWE-89",
        fingerprint="semgrep:python.lang.security.audit.sql_injection.raw-query:app/db.py:12",
    ),
    NormalizedFinding(
        tool="trivy", category=FindingCategory.SCA, severity="critical", title="RCE in pyyaml",
        rule_id="CVE-2020-14343", file="requirements.txt", cvss=9.8,
    ),
    NormalizedFinding(tool="bandit", category=FindingCategory.SAST, severity="low", title="assert_used"),
]


def _payload(findings=FINDINGS, errors=None) -> ScanPayload:
    return ScanPayload(
        metadata=ScanMetadata(
            timestamp=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
            repository="acme/webapp",
            branch="main",
            commit="abc123",
            triggered_by="ci",
        ),
        summary=ScanSummary.from_findings(findings),
        findings=findings,
        errors=errors or [],
    )


class TestRecordScan:
    @pytest.mark.asyncio
    async def test_scan_findings_and_mappings(self, db_session, repository, notifier):
        scan, decision = await ScanService(db_session, notifier).record_scan(
            _payload(errors=["gitleaks: exited with 1"]), repository.repository_id
        )
        await db_session.commit()

        assert decision.status == GateStatus.FAILED
        stored = await ScanRepository(db_session).get(scan.scan_id)
        assert stored.status == ScanStatus.COMPLETED
        assert stored.gate_status == GateStatus.FAILED
        assert stored.total_findings == 3
        assert (stored.critical_count, stored.high_count, stored.low_count) == (1, 1, 1)
        assert stored.by_tool == {"semgrep": 1, "trivy": 1, "bandit": 1}
        assert stored.commit_sha == "abc123"
        assert stored.error == "gitleaks: exited with 1"

        findings = await FindingRepository(db_session).list_by_scan(scan.scan_id)
        assert len(findings) == 3
        assert await FindingRepository(db_session).severity_counts(scan.scan_id) == {
            "critical": 1, "high": 1, "low": 1,
        }

        mappings = await ComplianceMappingRepository(db_session).list_for_findings(
            [f.finding_id for f in findings]
        )
        by_tool = {f.finding_id: f.tool for f in findings}
        pairs = {(by_tool[m.finding_id], m.framework, m.category) for m in mappings}
        assert pairs == {
            ("semgrep", ComplianceFramework.OWASP_TOP10, "A03:2021"),
            ("semgrep", ComplianceFramework.CWE_TOP25, "CWE-89"),
            ("trivy", ComplianceFramework.OWASP_TOP10, "A06:2021"),
            ("bandit", ComplianceFramework.OWASP_TOP10, "A04:2021"),
        }

        assert notifier.types() == ["scan.completed"]
        assert notifier.events[0].payload["gate_status"] == GateStatus.FAILED

    @pytest.mark.asyncio
    async def test_repeat_scans_keep_their_own_findings(self, db_session, repository):
        service = ScanService(db_session)
        await service.record_scan(_payload(), repository.repository_id)
        await service.record_scan(_payload(), repository.repository_id)
        await db_session.commit()

        assert len(await FindingRepository(db_session).list_by_repository(repository.repository_id)) == 6

    @pytest.mark.asyncio
    async def test_clean_scan_passes(self, db_session, repository):
        scan, decision = await ScanService(db_session).record_scan(_payload([]), repository.repository_id)
        assert decision.status == GateStatus.PASSED
        assert scan.total_findings == 0

    @pytest.mark.asyncio
    async def test_unknown_repository(self, db_session):
        with pytest.raises(NotFoundError):
            await ScanService(db_session).record_scan(_payload(), "repo_missing")


class TestComplianceMappingRepository:
    @pytest.mark.asyncio
    async def test_duplicates_are_skipped(self, db_session):
        repo = ComplianceMappingRepository(db_session)
        mapping = ComplianceCategoryMapping(
            finding_id="find_1", framework=ComplianceFramework.OWASP_TOP10, category="A03:2021"
        )
        other = ComplianceCategoryMapping(
            finding_id="find_1", framework=ComplianceFramework.CWE_TOP25, category="CWE-89"
        )

        assert await repo.add_many([mapping, mapping, other]) == 2
        assert await repo.add_many([mapping, other]) == 0
        assert await repo.add_many([]) == 0
        assert len(await repo.list_for_findings(["find_1"])) == 2


class TestRecordFailure:
    @pytest.mark.asyncio
    async def test_failed_scan_row(self, db_session, repository, notifier):
        scan = await ScanService(db_session, notifier).record_failure(
            repository.repository_id, "scheduled-scan", "Repository acme/webapp not found"
        )
        await db_session.commit()

        stored = await ScanRepository(db_session).get(scan.scan_id)
        assert stored.status == ScanStatus.FAILED
        assert stored.gate_status is None
        assert stored.error == "Repository acme/webapp not found"
        assert notifier.types() == ["scan.failed"]


class TestScorecard:
    @pytest.mark.asyncio
    async def test_owasp_for_scan(self, db_session, repository):
        service = ScanService(db_session)
        scan, _ = await service.record_scan(_payload(), repository.repository_id)
        await db_session.commit()

        scorecard = await service.get_scorecard(ComplianceFramework.OWASP_TOP10, scan_id=scan.scan_id)
        entries = {e.code: e for e in scorecard.entries}

        assert scorecard.total_findings == 3
        assert scorecard.critical_findings == 1
        assert scorecard.compliance_score == 90
        assert entries["A03:2021"].total == 1
        assert entries["A06:2021"].by_severity.critical == 1

    @pytest.mark.asyncio
    async def test_cwe_top25_for_repository(self, db_session, repository):
        service = ScanService(db_session)
        await service.record_scan(_payload(), repository.repository_id)
        await db_session.commit()

        scorecard = await service.get_scorecard(ComplianceFramework.CWE_TOP25, repository_id=repository.repository_id)
        assert scorecard.total_findings == 1
        assert next(e for e in scorecard.entries if e.code == "CWE-89").total == 1

    @pytest.mark.asyncio
    async def test_requires_a_scope(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ScanService(db_session).get_scorecard(ComplianceFramework.OWASP_TOP10)
        assert exc_info.value.code == "VALIDATION_ERROR"


class FakeOrchestrator:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    async def scan_repository(self, source_ref, triggered_by="manual"):
        self.calls.append((source_ref, triggered_by))
        if self.error:
            raise self.error
        return self.payload


def _schedule(repository_id: str) -> ScheduleDefinition:
    return ScheduleDefinition(
        schedule_id="sched_0000000000000001",
        repository_id=repository_id,
        schedule_type=ScheduleType.DAILY,
        config=ScheduleConfig(),
    )


class TestScheduledRunner:
    @pytest.mark.asyncio
    async def test_records_scan(self, session_factory, repository, notifier):
        orchestrator = FakeOrchestrator(payload=_payload())
        run = make_scan_runner(session_factory, orchestrator=orchestrator, notifier=notifier)

        scan = await run(_schedule(repository.repository_id), repository.url)

        assert orchestrator.calls == [(repository.url, "scheduled-scan")]
        async with session_factory() as session:
            stored = await ScanRepository(session).get(scan.scan_id)
        assert stored.status == ScanStatus.COMPLETED
        assert notifier.types() == ["scan.completed"]

    @pytest.mark.asyncio
    async def test_failed_scan_is_recorded_and_reraised(self, session_factory, repository, notifier):
        orchestrator = FakeOrchestrator(error=ScanFailedError("All scanners failed"))
        run = make_scan_runner(session_factory, orchestrator=orchestrator, notifier=notifier)

        with pytest.raises(ScanFailedError):
            await run(_schedule(repository.repository_id), repository.url)

        async with session_factory() as session:
            [stored] = await ScanRepository(session).list_by_repository(repository.repository_id)
        assert stored.status == ScanStatus.FAILED
        assert stored.triggered_by == "scheduled-scan"
        assert stored.error == "All scanners failed"
        assert notifier.types() == ["scan.failed"]
