"""npm audit adapter: known-vulnerable npm dependencies."""

from __future__ import annotations

from pathlib import Path

from secgate.scanning.adapters.base import ToolAdapter
from secgate.scanning.process import report_path
from secgate.scanning.reports import (
    ExecutionError,
    NoFindings,
    NotAvailable,
    NpmAuditReport,
    ToolOutcome,
)


class NpmAuditAdapter(ToolAdapter):
    tool = "npm-audit"
    binary = "npm"

    def check_available(self, repo_path: Path) -> NotAvailable | None:
        missing = super().check_available(repo_path)
        if missing:
            return missing
        if not (repo_path / "package.json").is_file():
            return NotAvailable(self.tool, "no package.json in checkout")
        return None

    async def collect(self, repo_path: Path) -> ToolOutcome:
        with report_path(self.tool, self.report_dir) as report:
            document = await self.run_for_report(
                [self.binary, "audit", "--json"],
                report,
                cwd=repo_path,
                stdout_is_report=True,
            )
        if isinstance(document, (NoFindings, ExecutionError)):
            return document
        if not isinstance(document, dict):
            return ExecutionError(self.tool, "report is not a JSON object")

        vulnerabilities = document.get("vulnerabilities") or {}
        if not vulnerabilities:
            # npm prints {"error": {...}} when it cannot audit (no lockfile, offline).
            if document.get("error"):
                message = (document["error"] or {}).get("summary") or "npm audit reported an error"
                return ExecutionError(self.tool, message)
            return NoFindings(self.tool)
        return NpmAuditReport(tool=self.tool, vulnerabilities=vulnerabilities)
