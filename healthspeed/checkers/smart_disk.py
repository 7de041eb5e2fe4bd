"""S.M.A.R.T. disk health — predicted drive failure."""

from __future__ import annotations

import logging
import re
import sys
from enum import Enum

import psutil

from ..engine.checker import Checker
from ..engine.command import DEFAULT_TIMEOUT_SECONDS, CommandError, run_with_timeout
from ..engine.models import (
    CheckCategory,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)

logger = logging.getLogger(__name__)

# "SMART Status:   Verified" (older releases spell it S.M.A.R.T.)
_DISKUTIL_SMART_RE = re.compile(r"S\.?M\.?A\.?R\.?T\.? Status:\s*(\w+)")


class DiskHealth(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FAILING = "failing"


def parse_smart_status(platform: str, output: str) -> DiskHealth | None:
    """Worst health reported in ``output``, None when it is not recognised."""
    if platform == "win32":
        # wmic diskdrive CSV: header row, then one Status column per drive
        rows = [line.strip() for line in output.splitlines() if line.strip()]
        statuses = [row.rsplit(",", 1)[-1] for row in rows[1:]]
        if not statuses:
            return None
        if any(s in ("Pred Fail", "Error") for s in statuses):
            return DiskHealth.FAILING
        if "Degraded" in statuses:
            return DiskHealth.DEGRADED
        return DiskHealth.OK
    if platform == "darwin":
        m = _DISKUTIL_SMART_RE.search(output)
        status = m.group(1) if m else None
        if status == "Failing":
            return DiskHealth.FAILING
        return DiskHealth.OK if status == "Verified" else None
    if "FAILING_NOW" in output or "PASSED: NO" in output or ": FAILED" in output:
        return DiskHealth.FAILING
    if "PASSED" in output or ": OK" in output:
        return DiskHealth.OK
    return None


def physical_devices() -> list[str]:
    """Block devices behind mounted partitions."""
    return sorted({p.device for p in psutil.disk_partitions(all=False) if p.device.startswith("/dev/")})


class SmartDiskChecker(Checker):
    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, platform: str | None = None) -> None:
        self.timeout = timeout
        self.platform = platform or ("linux" if sys.platform.startswith("linux") else sys.platform)

    def name(self) -> str:
        return "smart_disk_checker"

    def category(self) -> CheckCategory:
        return CheckCategory.PERFORMANCE

    def _commands(self) -> list[list[str]]:
        if self.platform == "win32":
            return [["wmic", "diskdrive", "get", "model,status", "/format:csv"]]
        if self.platform == "darwin":
            return [["diskutil", "info", "disk0"]]
        if self.platform == "linux":
            return [["smartctl", "-H", dev] for dev in physical_devices()]
        return []

    def run(self, context: ScanContext) -> list[Issue]:
        worst: DiskHealth | None = None
        for cmd in self._commands():
            try:
                out = run_with_timeout(cmd, self.timeout)
            except CommandError as e:
                logger.debug("S.M.A.R.T. status unavailable: %s", e)
                continue
            health = parse_smart_status(self.platform, out.stdout)
            if health is DiskHealth.FAILING:
                worst = health
                break
            if health is DiskHealth.DEGRADED:
                worst = health

        if worst is DiskHealth.FAILING:
            return [Issue(
                id="disk_smart_failure",
                severity=Severity.CRITICAL,
                title="Hard Drive Failure Predicted",
                description=(
                    "S.M.A.R.T. indicates imminent drive failure. Back up your data "
                    "immediately and replace this drive."
                ),
                impact=ImpactCategory.PERFORMANCE,
            )]
        if worst is DiskHealth.DEGRADED:
            return [Issue(
                id="disk_smart_degraded",
                severity=Severity.WARNING,
                title="Hard Drive Health Degraded",
                description="The drive is showing signs of degradation. Monitor closely and plan for replacement.",
                impact=ImpactCategory.PERFORMANCE,
            )]
        return []
