"""Abstract base class for scanner tool adapters."""

from __future__ import annotations

import json
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from secgate.config import settings
from secgate.errors.exceptions import ToolExecutionError
from secgate.models.finding import NormalizedFinding
from secgate.scanning.normalize import normalize
from secgate.scanning.process import run_tool
from secgate.scanning.reports import (
    ExecutionError,
    NoFindings,
    NotAvailable,
    RawToolResult,
    ToolOutcome,
)

logger = logging.getLogger(__name__)

# Directories never worth walking when probing a checkout for relevant files.
SKIP_DIRS = {".git", "node_modules", ".venv", "venv", "__pycache__", "dist", "build"}


def has_files(repo_path: Path, suffix: str) -> bool:
    """True if the checkout contains at least one file with ``suffix``."""
    for child in repo_path.iterdir():
        if child.is_dir():
            if child.name not in SKIP_DIRS and not child.is_symlink() and has_files(child, suffix):
                return True
        elif child.suffix == suffix:
            return True
    return False


class ToolAdapter(ABC):
    """Runs one external scanner against a checkout.

    Subclasses implement :meth:`collect`, which returns exactly one
    :data:`ToolOutcome` variant. :meth:`scan` turns that outcome into
    findings: unavailable tools and empty reports give ``[]``; execution
    failures give ``[]`` with a warning unless the adapter is ``required``,
    in which case a :class:`ToolExecutionError` is raised.
    """

    tool: str = "unknown"
    binary: str = ""
    required: bool = False

    def __init__(self, timeout: float | None = None, report_dir: str | Path | None = None) -> None:
        self.timeout = timeout if timeout is not None else settings.scan_timeout_seconds
        self.report_dir = report_dir

    # ----- public API -----

    def check_available(self, repo_path: Path) -> NotAvailable | None:
        """Return a :class:`NotAvailable` if this tool cannot run here."""
        if not self.binary or shutil.which(self.binary) is None:
            return NotAvailable(self.tool, f"{self.binary or self.tool} not found on PATH")
        return None

    @abstractmethod
    async def collect(self, repo_path: Path) -> ToolOutcome:
        """Run the tool and return its raw outcome."""
        ...

    async def scan(self, repo_path: Path | str) -> list[NormalizedFinding]:
        repo_path = Path(repo_path)
        outcome = self.check_available(repo_path)
        if outcome is None:
            logger.info("Running %s scan on %s", self.tool, repo_path)
            outcome = await self.collect(repo_path)
        findings = self.resolve(outcome)
        logger.info("%s scan completed: %d findings", self.tool, len(findings))
        return findings

    def resolve(self, outcome: ToolOutcome) -> list[NormalizedFinding]:
        if isinstance(outcome, NotAvailable):
            logger.warning("%s not available, skipping: %s", self.tool, outcome.reason)
            return []
        if isinstance(outcome, NoFindings):
            return []
        if isinstance(outcome, ExecutionError):
            if self.required:
                logger.error("%s scan failed: %s", self.tool, outcome.message)
                raise ToolExecutionError(
                    self.tool, outcome.message, details={"returncode": outcome.returncode}
                )
            logger.warning("%s scan failed, continuing without it: %s", self.tool, outcome.message)
            return []
        if isinstance(outcome, RawToolResult):
            return normalize(outcome)
        raise TypeError(f"Unexpected outcome from {self.tool}: {outcome!r}")

    # ----- helpers for subclasses -----

    async def run_for_report(
        self,
        args: list[str],
        report: Path,
        cwd: Path,
        stdout_is_report: bool = False,
    ) -> Any | NoFindings | ExecutionError:
        """Run ``args`` and parse the JSON report it leaves at ``report``.

        Returns the parsed document, or the outcome variant explaining why
        there is none. With ``stdout_is_report`` the tool's stdout is written
        to ``report`` first, for tools that only print their JSON.
        """
        try:
            result = await run_tool(args, cwd=cwd, timeout=self.timeout)
        except FileNotFoundError as exc:
            return ExecutionError(self.tool, f"could not start {args[0]}: {exc}")

        if result.timed_out:
            return ExecutionError(self.tool, f"timed out after {self.timeout}s")

        if stdout_is_report and result.stdout.strip():
            report.write_text(result.stdout, encoding="utf-8")

        if not report.exists() or report.stat().st_size == 0:
            if result.returncode:
                return ExecutionError(
                    self.tool,
                    f"exited with {result.returncode} and no report: {result.stderr.strip()[:500]}",
                    result.returncode,
                )
            return NoFindings(self.tool)

        try:
            return json.loads(report.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            return ExecutionError(self.tool, f"unparseable report: {exc}", result.returncode)
