"""Subprocess execution for scanner binaries.

Scanners run out of process with a hard timeout. On timeout or cancellation
the whole process group is killed so no orphaned scanner keeps reading the
checkout after the scan has moved on.
"""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
import signal
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from secgate.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    args: list[str]
    returncode: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    duration_seconds: float = 0.0


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


async def run_tool(
    args: list[str],
    cwd: Path | str | None = None,
    timeout: float | None = None,
) -> ProcessResult:
    """Run a scanner binary and capture its output.

    Never raises for a non-zero exit; scanners routinely exit non-zero when
    they find something. Raises ``FileNotFoundError`` when the binary is gone.
    """
    started = time.monotonic()
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_process_group(proc)
        await proc.wait()
        logger.warning("%s timed out after %ss, killed", args[0], timeout)
        return ProcessResult(
            args=list(args),
            returncode=None,
            stdout="",
            stderr="",
            timed_out=True,
            duration_seconds=time.monotonic() - started,
        )
    except asyncio.CancelledError:
        _kill_process_group(proc)
        await asyncio.shield(proc.wait())
        logger.warning("%s cancelled, killed", args[0])
        raise

    return ProcessResult(
        args=list(args),
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        duration_seconds=time.monotonic() - started,
    )


@contextmanager
def report_path(tool: str, directory: Path | str | None = None, suffix: str = ".json") -> Iterator[Path]:
    """Yield a private report path for one tool invocation and always delete it.

    The name carries a millisecond timestamp plus a random suffix so
    concurrent scans of the same tool never collide.
    """
    base = Path(directory or settings.temp_dir)
    path = base / f"{tool}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{suffix}"
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to remove report file %s", path, exc_info=True)
