"""ScanOrchestrator: runs every tool adapter against one checkout.

Usage::

    orchestrator = ScanOrchestrator()
    payload = await orchestrator.scan_repository("octocat/hello-world", "ci")
    payload.summary.by_severity.critical
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from secgate.errors.exceptions import ScanFailedError
from secgate.logging_config import bind_scan_context, clear_scan_context
from secgate.models.finding import NormalizedFinding, ScanMetadata, ScanPayload, ScanSummary
from secgate.scanning.adapters import build_adapters
from secgate.scanning.adapters.base import ToolAdapter
from secgate.scanning.checkout import SourceResolver
from secgate.services.id_generator import generate_id

logger = logging.getLogger(__name__)


class ScanOrchestrator:
    """Fan out to all adapters concurrently and aggregate what comes back.

    A failing adapter contributes zero findings and never aborts its
    siblings. The scan as a whole fails only when the target cannot be
    reached or every adapter raised.
    """

    def __init__(
        self,
        adapters: list[ToolAdapter] | None = None,
        resolver: SourceResolver | None = None,
    ) -> None:
        self.adapters = adapters if adapters is not None else build_adapters()
        self.resolver = resolver or SourceResolver()

    async def scan_repository(self, source_ref: str, triggered_by: str = "manual") -> ScanPayload:
        tokens = bind_scan_context(generate_id("scan_"), repository=source_ref)
        try:
            async with self.resolver.checkout(source_ref) as checkout:
                metadata = ScanMetadata(
                    timestamp=datetime.now(timezone.utc),
                    repository=checkout.repository,
                    branch=checkout.branch,
                    commit=checkout.commit,
                    triggered_by=triggered_by,
                )
                return await self._run(checkout.path, metadata)
        finally:
            clear_scan_context(tokens)

    async def scan_local(self, repo_path: Path | str, metadata: ScanMetadata) -> ScanPayload:
        """Scan a directory that is already on disk, with caller-supplied metadata."""
        repo_path = Path(repo_path)
        if not repo_path.is_dir():
            raise ScanFailedError(f"Scan target {repo_path} is not a directory")

        tokens = bind_scan_context(generate_id("scan_"), repository=metadata.repository)
        try:
            return await self._run(repo_path, metadata)
        finally:
            clear_scan_context(tokens)

    async def _run(self, repo_path: Path, metadata: ScanMetadata) -> ScanPayload:
        logger.info("Starting %d scanners on %s", len(self.adapters), repo_path)
        findings, errors = await self._run_all(repo_path)

        payload = ScanPayload(
            metadata=metadata,
            summary=ScanSummary.from_findings(findings),
            findings=findings,
            errors=errors,
        )
        logger.info(
            "Scan completed for %s: %d findings, %d scanner errors",
            metadata.repository,
            payload.summary.total,
            len(errors),
        )
        return payload

    async def _run_all(self, repo_path: Path) -> tuple[list[NormalizedFinding], list[str]]:
        results = await asyncio.gather(
            *(adapter.scan(repo_path) for adapter in self.adapters),
            return_exceptions=True,
        )

        findings: list[NormalizedFinding] = []
        errors: list[str] = []
        for adapter, result in zip(self.adapters, results):
            if isinstance(result, BaseException):
                # Cancellation and interpreter exits are not adapter failures.
                if not isinstance(result, Exception):
                    raise result
                logger.error("%s scan failed: %s", adapter.tool, result, exc_info=result)
                errors.append(f"{adapter.tool}: {result}")
                continue
            findings.extend(result)

        if self.adapters and len(errors) == len(self.adapters):
            raise ScanFailedError("All scanners failed", details={"errors": errors})
        return findings, errors
