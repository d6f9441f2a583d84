"""Persist scan results: gate decision, findings, compliance mappings, notification."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from secgate.compliance.mapper import mappings_for_finding
from secgate.compliance.scorecard import cwe_top25_scorecard, owasp_scorecard
from secgate.db.models.finding import FindingRow
from secgate.db.models.scan import ScanRow
from secgate.errors.exceptions import NotFoundError, ScanFailedError, ValidationError
from secgate.events.notifier import (
    SCAN_COMPLETED,
    SCAN_FAILED,
    LoggingNotifier,
    ScanNotifier,
    build_event,
)
from secgate.gate.policy_engine import DEFAULT_POLICY, evaluate_gate
from secgate.models.compliance import Scorecard
from secgate.models.enums import ComplianceFramework, ScanStatus
from secgate.models.finding import ScanPayload
from secgate.models.policy import GateDecision, SecurityGatePolicy
from secgate.models.schedule import ScheduleDefinition
from secgate.repositories.compliance_repo import ComplianceMappingRepository
from secgate.repositories.finding_repo import FindingRepository
from secgate.repositories.repository_repo import RepositoryRepository
from secgate.repositories.scan_repo import ScanRepository
from secgate.scanning.orchestrator import ScanOrchestrator
from secgate.scheduling.calendar import as_utc
from secgate.services.id_generator import generate_id

logger = logging.getLogger(__name__)


class ScanService:
    """Records orchestrator output. The caller owns the transaction."""

    def __init__(self, session: AsyncSession, notifier: ScanNotifier | None = None):
        self.session = session
        self.notifier = notifier or LoggingNotifier()

    async def record_scan(
        self,
        payload: ScanPayload,
        repository_id: str,
        policy: SecurityGatePolicy = DEFAULT_POLICY,
    ) -> tuple[ScanRow, GateDecision]:
        if await RepositoryRepository(self.session).get(repository_id) is None:
            raise NotFoundError("Repository", repository_id)

        decision = evaluate_gate(payload.summary, policy)
        counts = payload.summary.by_severity

        scan = await ScanRepository(self.session).create(
            repository_id=repository_id,
            branch=payload.metadata.branch,
            commit_sha=payload.metadata.commit,
            triggered_by=payload.metadata.triggered_by,
            status=ScanStatus.COMPLETED,
            gate_status=decision.status,
            gate_reason=decision.reason,
            total_findings=payload.summary.total,
            critical_count=counts.critical,
            high_count=counts.high,
            medium_count=counts.medium,
            low_count=counts.low,
            info_count=counts.info,
            by_tool=dict(payload.summary.by_tool),
            error="; ".join(payload.errors) or None,
            completed_at=as_utc(payload.metadata.timestamp),
        )

        mappings = []
        for finding in payload.findings:
            row = FindingRow(
                finding_id=generate_id("find_"),
                scan_id=scan.scan_id,
                tool=finding.tool,
                category=finding.category,
                severity=finding.severity,
                rule_id=finding.rule_id,
                title=finding.title,
                file_path=finding.file,
                line_number=finding.line,
                cwe=finding.cwe,
                cvss_score=finding.cvss,
                message=finding.message,
                fingerprint=finding.fingerprint,
            )
            self.session.add(row)
            mappings.extend(mappings_for_finding(row.finding_id, finding))
        await self.session.flush()

        inserted = await ComplianceMappingRepository(self.session).add_many(mappings)

        logger.info(
            "Scan %s recorded: %d findings, %d compliance mappings, gate %s",
            scan.scan_id,
            payload.summary.total,
            inserted,
            decision.status,
        )
        await self.notifier.notify(build_event(SCAN_COMPLETED, {
            "scan_id": scan.scan_id,
            "repository_id": repository_id,
            "status": scan.status,
            "gate_status": decision.status,
            "total_findings": scan.total_findings,
        }))
        return scan, decision

    async def record_failure(self, repository_id: str, triggered_by: str, error: str) -> ScanRow:
        """Persist a scan that never produced results. No gate decision is made."""
        scan = await ScanRepository(self.session).create(
            repository_id=repository_id,
            triggered_by=triggered_by,
            status=ScanStatus.FAILED,
            error=error,
            completed_at=datetime.now(timezone.utc),
        )
        logger.warning("Scan %s for repository %s failed: %s", scan.scan_id, repository_id, error)
        await self.notifier.notify(build_event(SCAN_FAILED, {
            "scan_id": scan.scan_id,
            "repository_id": repository_id,
            "error": error,
        }))
        return scan

    async def get_scorecard(
        self,
        framework: ComplianceFramework,
        scan_id: str | None = None,
        repository_id: str | None = None,
    ) -> Scorecard:
        """Scorecard over one scan's findings, or every scan of a repository."""
        finding_repo = FindingRepository(self.session)
        if scan_id:
            findings = await finding_repo.list_by_scan(scan_id)
        elif repository_id:
            findings = await finding_repo.list_by_repository(repository_id)
        else:
            raise ValidationError("scan_id or repository_id is required")

        mappings = await ComplianceMappingRepository(self.session).list_for_findings(
            [f.finding_id for f in findings]
        )
        if framework == ComplianceFramework.CWE_TOP25:
            return cwe_top25_scorecard(findings, mappings)
        return owasp_scorecard(findings, mappings)


def make_scan_runner(
    session_factory: async_sessionmaker[AsyncSession],
    orchestrator: ScanOrchestrator | None = None,
    policy: SecurityGatePolicy = DEFAULT_POLICY,
    notifier: ScanNotifier | None = None,
):
    """Build the schedule engine's runner: scan the repository URL, then record it."""
    orchestrator = orchestrator or ScanOrchestrator()

    async def run(schedule: ScheduleDefinition, repository_url: str) -> ScanRow:
        try:
            payload = await orchestrator.scan_repository(repository_url, triggered_by="scheduled-scan")
        except ScanFailedError as exc:
            async with session_factory() as session:
                await ScanService(session, notifier).record_failure(
                    schedule.repository_id, "scheduled-scan", exc.message
                )
                await session.commit()
            raise

        async with session_factory() as session:
            scan, _ = await ScanService(session, notifier).record_scan(
                payload, schedule.repository_id, policy
            )
            await session.commit()
        return scan

    return run
