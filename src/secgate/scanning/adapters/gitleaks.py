"""Gitleaks adapter: secret detection over the working tree."""

from __future__ import annotations

from pathlib import Path

from secgate.scanning.adapters.base import ToolAdapter
from secgate.scanning.process import report_path
from secgate.scanning.reports import ExecutionError, GitleaksReport, NoFindings, ToolOutcome


class GitleaksAdapter(ToolAdapter):
    tool = "gitleaks"
    binary = "gitleaks"

    async def collect(self, repo_path: Path) -> ToolOutcome:
        with report_path(self.tool, self.report_dir) as report:
            # --no-git: scan files as checked out, not history
            document = await self.run_for_report(
                [
                    self.binary, "detect",
                    "--source", ".",
                    "--no-git",
                    "--report-path", str(report),
                    "--report-format", "json",
                    "--exit-code", "0",
                ],
                report,
                cwd=repo_path,
            )
        if isinstance(document, (NoFindings, ExecutionError)):
            return document

        # Current releases write a bare array; older ones wrapped it.
        if isinstance(document, dict):
            document = document.get("findings") or []
        if not isinstance(document, list):
            return ExecutionError(self.tool, "report is not a JSON array")
        if not document:
            return NoFindings(self.tool)
        return GitleaksReport(tool=self.tool, leaks=document)
