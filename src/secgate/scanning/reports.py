"""Raw tool outcomes.

Every adapter run ends in exactly one of these variants. The three generic
ones describe why there is nothing to normalize; the per-tool report classes
carry the parsed native JSON and go through :func:`secgate.scanning.normalize.normalize`.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class NotAvailable:
    """Binary missing or nothing in the checkout for this tool to look at."""

    tool: str
    reason: str


@dataclass(frozen=True)
class NoFindings:
    tool: str


@dataclass(frozen=True)
class ExecutionError:
    """The tool ran but left no usable report (bad exit, timeout, garbage JSON)."""

    tool: str
    message: str
    returncode: int | None = None


@dataclass(frozen=True)
class RawToolResult:
    tool: str


@dataclass(frozen=True)
class SemgrepReport(RawToolResult):
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class TrivyReport(RawToolResult):
    vulnerability_results: list[dict[str, Any]] = field(default_factory=list)
    misconfiguration_results: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class GitleaksReport(RawToolResult):
    leaks: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class NpmAuditReport(RawToolResult):
    vulnerabilities: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BanditReport(RawToolResult):
    results: list[dict[str, Any]] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)


ToolOutcome = NotAvailable | NoFindings | ExecutionError | RawToolResult
