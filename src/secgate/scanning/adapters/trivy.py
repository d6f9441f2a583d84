"""Trivy adapter: dependency vulnerabilities and IaC misconfigurations."""

from __future__ import annotations

import logging
from pathlib import Path

from secgate.scanning.adapters.base import ToolAdapter
from secgate.scanning.process import report_path
from secgate.scanning.reports import ExecutionError, NoFindings, ToolOutcome, TrivyReport

logger = logging.getLogger(__name__)


class TrivyAdapter(ToolAdapter):
    """Runs two ``trivy fs`` passes: ``vuln`` for packages, ``misconfig`` for IaC.

    Either pass may fail on its own without losing the other's results.
    """

    tool = "trivy"
    binary = "trivy"

    async def _scan_pass(self, repo_path: Path, scanner: str) -> list[dict] | ExecutionError:
        with report_path(f"{self.tool}-{scanner}", self.report_dir) as report:
            document = await self.run_for_report(
                [
                    self.binary, "fs",
                    "--scanners", scanner,
                    "--format", "json",
                    "--output", str(report),
                    "--quiet",
                    ".",
                ],
                report,
                cwd=repo_path,
            )
        if isinstance(document, NoFindings):
            return []
        if isinstance(document, ExecutionError):
            logger.warning("Trivy %s pass failed: %s", scanner, document.message)
            return document
        if not isinstance(document, dict):
            return ExecutionError(self.tool, f"{scanner} report is not a JSON object")
        return document.get("Results") or []

    async def collect(self, repo_path: Path) -> ToolOutcome:
        vulns = await self._scan_pass(repo_path, "vuln")
        misconfigs = await self._scan_pass(repo_path, "misconfig")

        if isinstance(vulns, ExecutionError) and isinstance(misconfigs, ExecutionError):
            return ExecutionError(self.tool, f"{vulns.message}; {misconfigs.message}")

        return TrivyReport(
            tool=self.tool,
            vulnerability_results=vulns if isinstance(vulns, list) else [],
            misconfiguration_results=misconfigs if isinstance(misconfigs, list) else [],
        )
