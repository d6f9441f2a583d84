"""Semgrep adapter: primary SAST scanner (code vulnerabilities, injection flaws)."""

from __future__ import annotations

from pathlib import Path

from secgate.scanning.adapters.base import ToolAdapter
from secgate.scanning.process import report_path
from secgate.scanning.reports import ExecutionError, NoFindings, SemgrepReport, ToolOutcome


class SemgrepAdapter(ToolAdapter):
    """Runs ``semgrep --config=auto`` over the checkout.

    Semgrep is the primary SAST source, so a run that leaves no parseable
    report is surfaced as an error instead of silently producing nothing.
    """

    tool = "semgrep"
    binary = "semgrep"
    required = True

    async def collect(self, repo_path: Path) -> ToolOutcome:
        with report_path(self.tool, self.report_dir) as report:
            document = await self.run_for_report(
                [
                    self.binary, "scan",
                    "--config=auto",
                    "--json",
                    f"--output={report}",
                    "--quiet",
                    ".",
                ],
                report,
                cwd=repo_path,
            )
        if isinstance(document, (NoFindings, ExecutionError)):
            return document
        if not isinstance(document, dict):
            return ExecutionError(self.tool, "report is not a JSON object")
        return SemgrepReport(
            tool=self.tool,
            results=document.get("results") or [],
            errors=document.get("errors") or [],
        )
