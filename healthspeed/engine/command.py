"""External process runner with a hard deadline.

Fix actions shell out to OS utilities that change system state. Every such
call goes through ``run_with_timeout`` so a hung utility can never hang the
caller: the child is killed once the deadline passes.
"""

from __future__ import annotations

import logging
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60


class CommandError(Exception):
    """Raised when a command cannot be spawned or waited on."""


class CommandTimeoutError(CommandError):
    """Raised when a command outlives its deadline."""


@dataclass
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_with_timeout(cmd: list[str], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> CommandOutput:
    """Spawn ``cmd`` (no shell), wait at most ``timeout`` seconds."""
    t0 = time.perf_counter()
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise CommandError(f"failed to spawn {cmd[0]}: {e}") from e

    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as e:
        # Best effort: the process may already be gone
        proc.kill()
        try:
            proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("Process %s did not exit after kill", proc.pid)
        raise CommandTimeoutError(f"{cmd[0]} timed out after {timeout}s") from e

    duration_ms = int((time.perf_counter() - t0) * 1000)
    logger.debug("%s exited %d in %dms", cmd[0], proc.returncode, duration_ms)
    return CommandOutput(
        returncode=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=duration_ms,
    )
