"""Bandit adapter: Python-specific SAST."""

from __future__ import annotations

from pathlib import Path

from secgate.scanning.adapters.base import ToolAdapter, has_files
from secgate.scanning.process import report_path
from secgate.scanning.reports import (
    BanditReport,
    ExecutionError,
    NoFindings,
    NotAvailable,
    ToolOutcome,
)


class BanditAdapter(ToolAdapter):
    tool = "bandit"
    binary = "bandit"

    def check_available(self, repo_path: Path) -> NotAvailable | None:
        missing = super().check_available(repo_path)
        if missing:
            return missing
        if not has_files(repo_path, ".py"):
            return NotAvailable(self.tool, "no Python files in checkout")
        return None

    async def collect(self, repo_path: Path) -> ToolOutcome:
        with report_path(self.tool, self.report_dir) as report:
            # -ll: medium severity and up, -i: low confidence and up
            document = await self.run_for_report(
                [self.binary, "-r", ".", "-f", "json", "-o", str(report), "-ll", "-i", "-q"],
                report,
                cwd=repo_path,
            )
        if isinstance(document, (NoFindings, ExecutionError)):
            return document
        if not isinstance(document, dict):
            return ExecutionError(self.tool, "report is not a JSON object")
        results = document.get("results") or []
        if not results:
            return NoFindings(self.tool)
        return BanditReport(tool=self.tool, results=results, errors=document.get("errors") or [])
