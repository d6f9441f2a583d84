"""Resolve a scan source reference to a local checkout.

A source reference is either a directory on disk, scanned in place, or a
GitHub repository (``owner/repo`` or any github.com URL), shallow-cloned
into a private temp directory that is removed when the scan is done.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

import httpx

from secgate.config import settings
from secgate.errors.exceptions import ScanFailedError, ValidationError
from secgate.scanning.process import run_tool

logger = logging.getLogger(__name__)

_GITHUB_URL = re.compile(r"github\.com[/:]([\w-]+)/([\w.-]+)")
_OWNER_REPO = re.compile(r"^([\w-]+)/([\w.-]+)$")


@dataclass(frozen=True)
class Checkout:
    path: Path
    repository: str
    branch: str
    commit: str
    url: str | None = None


def parse_repository(identifier: str) -> tuple[str, str] | None:
    """Split a GitHub URL or ``owner/repo`` string into ``(owner, repo)``."""
    identifier = identifier.strip()
    match = _GITHUB_URL.search(identifier) or _OWNER_REPO.match(identifier)
    if not match:
        return None
    owner, repo = match.group(1), match.group(2)
    if repo.endswith(".git"):
        repo = repo[:-4]
    return owner, repo


class GitHubClient:
    """Minimal GitHub REST client for repository metadata."""

    def __init__(
        self,
        api_url: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.token = token if token is not None else settings.github_token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def get_repository(self, owner: str, repo: str) -> dict:
        url = f"{self.api_url}/repos/{owner}/{repo}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ScanFailedError(f"Failed to fetch repository {owner}/{repo}: {exc}") from exc

        if response.status_code == 404:
            raise ScanFailedError(f"Repository {owner}/{repo} not found")
        if response.status_code == 403:
            raise ScanFailedError(
                "GitHub API rate limit exceeded. Consider setting SECGATE_GITHUB_TOKEN."
            )
        if response.status_code != 200:
            raise ScanFailedError(
                f"Failed to fetch repository {owner}/{repo}: HTTP {response.status_code}"
            )
        return response.json()


async def _git_output(args: list[str], cwd: Path) -> str | None:
    try:
        result = await run_tool(["git", *args], cwd=cwd, timeout=30.0)
    except FileNotFoundError:
        return None
    if result.returncode != 0 or result.timed_out:
        return None
    return result.stdout.strip() or None


class SourceResolver:
    """Turns a source reference into a :class:`Checkout` for the duration of a scan."""

    def __init__(
        self,
        github: GitHubClient | None = None,
        temp_dir: str | Path | None = None,
        clone_timeout: float | None = None,
    ) -> None:
        self.github = github or GitHubClient()
        self.temp_dir = temp_dir or settings.temp_dir
        self.clone_timeout = clone_timeout if clone_timeout is not None else settings.clone_timeout_seconds

    @asynccontextmanager
    async def checkout(self, source_ref: str) -> AsyncIterator[Checkout]:
        local = Path(source_ref).expanduser()
        if local.is_dir():
            yield await self._local(local)
            return

        parsed = parse_repository(source_ref)
        if parsed is None:
            raise ValidationError(
                f"Invalid repository identifier: {source_ref}. "
                "Use a local path, owner/repo, or a full GitHub URL"
            )
        owner, repo = parsed
        logger.info("Fetching repository metadata for %s/%s", owner, repo)
        metadata = await self.github.get_repository(owner, repo)

        workdir = Path(tempfile.mkdtemp(prefix="secgate-scan-", dir=self.temp_dir))
        try:
            clone_url = metadata.get("clone_url") or f"https://github.com/{owner}/{repo}.git"
            await self._clone(clone_url, workdir)
            commit = await _git_output(["rev-parse", "HEAD"], workdir) or "HEAD"
            yield Checkout(
                path=workdir,
                repository=f"{owner}/{repo}",
                branch=metadata.get("default_branch") or "main",
                commit=commit,
                url=metadata.get("html_url"),
            )
        finally:
            self._cleanup(workdir)

    async def _local(self, path: Path) -> Checkout:
        path = path.resolve()
        branch = await _git_output(["rev-parse", "--abbrev-ref", "HEAD"], path)
        commit = await _git_output(["rev-parse", "HEAD"], path)
        return Checkout(
            path=path,
            repository=path.name,
            branch=branch or "local",
            commit=commit or "HEAD",
        )

    async def _clone(self, clone_url: str, target: Path) -> None:
        logger.info("Cloning repository %s", clone_url)
        try:
            result = await run_tool(
                ["git", "clone", "--depth", "1", "--single-branch", clone_url, str(target)],
                timeout=self.clone_timeout,
            )
        except FileNotFoundError as exc:
            raise ScanFailedError("git is not installed; cannot clone repository") from exc

        if result.timed_out:
            raise ScanFailedError(f"Cloning {clone_url} timed out after {self.clone_timeout}s")
        if result.returncode != 0:
            raise ScanFailedError(
                f"Failed to clone repository: {result.stderr.strip()[:500]}",
                details={"returncode": result.returncode},
            )

    @staticmethod
    def _cleanup(path: Path) -> None:
        try:
            shutil.rmtree(path)
            logger.info("Temporary checkout %s removed", path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to remove temporary checkout %s", path, exc_info=True)
