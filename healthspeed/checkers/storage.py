"""Storage checker — low free space and stale temporary files."""

from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Any

import psutil

from ..engine.checker import Checker
from ..engine.models import (
    CheckCategory,
    FixAction,
    FixOutcome,
    FixResult,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)

logger = logging.getLogger(__name__)

CRITICAL_USED_PERCENT = 95.0
WARNING_USED_PERCENT = 85.0
TEMP_CLEANUP_THRESHOLD_BYTES = 500 * 1024 * 1024
TEMP_MAX_AGE_DAYS = 7

GB = 1024 ** 3


def stale_files(directory: Path, max_age_days: int, now: float | None = None) -> list[tuple[Path, int]]:
    """Regular files under ``directory`` not modified for ``max_age_days``."""
    cutoff = (now or time.time()) - max_age_days * 86_400
    found = []
    for path in directory.rglob("*"):
        try:
            if path.is_symlink() or not path.is_file():
                continue
            st = path.stat()
        except OSError:
            continue
        if st.st_mtime < cutoff:
            found.append((path, st.st_size))
    return found


def _slug(mountpoint: str) -> str:
    slug = mountpoint.replace(":", "").replace("\\", "_").replace("/", "_").strip("_")
    return slug or "root"


class StorageChecker(Checker):
    fix_actions = ("clean_temp_files",)
    fix_action_prefixes = ("free_space_",)

    def __init__(self, mountpoints: list[str] | None = None, temp_dir: Path | None = None) -> None:
        self.mountpoints = mountpoints or [Path.home().anchor or "/"]
        self.temp_dir = temp_dir or Path(tempfile.gettempdir())

    def name(self) -> str:
        return "storage_checker"

    def category(self) -> CheckCategory:
        return CheckCategory.PERFORMANCE

    def run(self, context: ScanContext) -> list[Issue]:
        issues = []
        for mount in self.mountpoints:
            usage = psutil.disk_usage(mount)
            if usage.percent < WARNING_USED_PERCENT:
                continue
            free_gb = usage.free / GB
            issues.append(Issue(
                id=f"storage_low_space_{_slug(mount)}",
                severity=Severity.CRITICAL if usage.percent >= CRITICAL_USED_PERCENT else Severity.WARNING,
                title=f"Low disk space on {mount} ({free_gb:.1f} GB free)",
                description=(
                    f"{mount} is {usage.percent:.0f}% full. Low free space slows down updates, "
                    "caching and virtual memory."
                ),
                impact=ImpactCategory.PERFORMANCE,
                fix=FixAction(
                    action_id=f"free_space_{_slug(mount)}",
                    label="Show Cleanup Tips",
                    params={"mountpoint": mount},
                ),
            ))

        if not context.options.quick and self.temp_dir.is_dir():
            stale = stale_files(self.temp_dir, TEMP_MAX_AGE_DAYS)
            total = sum(size for _, size in stale)
            if total >= TEMP_CLEANUP_THRESHOLD_BYTES:
                issues.append(Issue(
                    id="storage_temp_cleanup",
                    severity=Severity.INFO,
                    title=f"{total / GB:.1f} GB of old temporary files",
                    description=(
                        f"{len(stale)} temporary files older than {TEMP_MAX_AGE_DAYS} days "
                        f"are taking up space in {self.temp_dir}."
                    ),
                    impact=ImpactCategory.PERFORMANCE,
                    fix=FixAction(
                        action_id="clean_temp_files",
                        label="Delete Old Temp Files",
                        auto_fixable=False,
                        params={"max_age_days": TEMP_MAX_AGE_DAYS},
                    ),
                ))
        return issues

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        if action_id != "clean_temp_files":
            return FixOutcome.failed(
                "Manual cleanup required. Delete unnecessary files, empty the trash, "
                "or uninstall unused programs."
            )

        max_age = int(params.get("max_age_days", TEMP_MAX_AGE_DAYS))
        removed = 0
        freed = 0
        for path, size in stale_files(self.temp_dir, max_age):
            try:
                path.unlink()
            except OSError as e:
                logger.debug("Could not remove %s: %s", path, e)
                continue
            removed += 1
            freed += size

        logger.info("Removed %d temp files (%d bytes)", removed, freed)
        return FixOutcome.succeeded(FixResult.ok(f"Removed {removed} files, freed {freed / GB:.2f} GB"))
