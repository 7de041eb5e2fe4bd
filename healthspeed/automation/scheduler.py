"""Automation scheduler — unattended scans gated by license and settings.

Each iteration:
  1. load automation settings (disabled → nothing else happens)
  2. load the license (no Automation feature → skip)
  3. check whether the configured schedule says a scan is due
  4. run a full scan
  5. optionally run every auto-fixable fix, each attempt independent
  6. persist the scan

The loop sleeps a fixed interval between iterations and never exits on an
error: failures are logged and retried next time round.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..engine.models import AutomationSettings, FixResult, ScanOptions, ScanResult, Schedule
from ..engine.scanner import ScannerEngine
from ..engine.store import ScanStore
from ..license.manager import LicenseManager, ProFeature

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600


def interval_seconds(schedule: str) -> int:
    """Seconds between scheduled scans. Unknown schedules fall back to weekly."""
    try:
        return Schedule(schedule.lower()).interval_seconds
    except ValueError:
        return Schedule.WEEKLY.interval_seconds


def scan_due(settings: AutomationSettings, last_scan_ts: int | None, now: float) -> bool:
    if not settings.enabled:
        return False
    if last_scan_ts is None:
        return True
    return now >= last_scan_ts + interval_seconds(settings.schedule)


class IterationStatus(str, Enum):
    DISABLED = "disabled"
    UNLICENSED = "unlicensed"
    NOT_DUE = "not_due"
    COMPLETED = "completed"


@dataclass
class AutoFixAttempt:
    issue_id: str
    action_id: str
    result: FixResult

    def to_dict(self) -> dict[str, Any]:
        return {"issue_id": self.issue_id, "action_id": self.action_id, **self.result.to_dict()}


@dataclass
class IterationReport:
    status: IterationStatus
    scan: ScanResult | None = None
    fixes: list[AutoFixAttempt] = field(default_factory=list)

    @property
    def fixes_failed(self) -> int:
        return sum(1 for f in self.fixes if not f.result.success)


class AutomationScheduler:
    """Background loop that runs scheduled scans.

    Lifecycle:
        scheduler = AutomationScheduler(store, license_manager, build_engine)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store: ScanStore,
        license_manager: LicenseManager,
        engine_factory: Callable[[], ScannerEngine],
        interval: int = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.license_manager = license_manager
        self.engine_factory = engine_factory
        self.interval = interval
        self._clock = clock
        self._executor: ThreadPoolExecutor | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self.last_report: IterationReport | None = None

    # -- one iteration ---------------------------------------------------------

    def run_iteration(self) -> IterationReport:
        """Run one scheduler pass. Store and license errors propagate."""
        settings = self.store.get_automation_settings()
        if not settings.enabled:
            logger.debug("Automation disabled; skipping scheduler iteration")
            return IterationReport(IterationStatus.DISABLED)

        license = self.license_manager.load()
        now = self._clock()
        if not license.has_pro_feature(ProFeature.AUTOMATION, now):
            logger.debug("Automation not available for current license; skipping")
            return IterationReport(IterationStatus.UNLICENSED)

        if not scan_due(settings, self.store.last_scan_timestamp(), now):
            logger.debug("No scheduled scan required at this time")
            return IterationReport(IterationStatus.NOT_DUE)

        logger.info(
            "Automation starting %s scan (auto-fix: %s)",
            settings.schedule, settings.auto_fix_enabled,
        )
        engine = self.engine_factory()
        result = engine.scan(ScanOptions())

        fixes: list[AutoFixAttempt] = []
        if settings.auto_fix_enabled:
            fixes = self._run_auto_fixes(engine, result)

        self.store.save_with_deltas(result)

        logger.info(
            "Automation scan completed: health=%d, speed=%d, issues=%d, fixes=%d (%d failed)",
            result.scores.health, result.scores.speed, len(result.issues),
            len(fixes), sum(1 for f in fixes if not f.result.success),
        )
        return IterationReport(IterationStatus.COMPLETED, scan=result, fixes=fixes)

    def _run_auto_fixes(self, engine: ScannerEngine, result: ScanResult) -> list[AutoFixAttempt]:
        """Attempt every auto-fixable issue. One failure never stops the rest."""
        attempts: list[AutoFixAttempt] = []
        for issue in result.issues:
            if issue.fix is None or not issue.fix.auto_fixable:
                continue

            fix_result = engine.fix_issue(issue.fix.action_id, issue.fix.params)
            attempts.append(AutoFixAttempt(issue.id, issue.fix.action_id, fix_result))

            if fix_result.success:
                logger.info("Auto-fix succeeded for %s", issue.id)
            else:
                logger.warning("Auto-fix failed for %s: %s", issue.id, fix_result.message)

            try:
                self.store.record_change(
                    "fixed" if fix_result.success else "fix_failed",
                    issue.fix.action_id,
                    fix_result.message,
                    scan_id=result.scan_id,
                )
            except Exception:
                logger.exception("Failed to record auto-fix for %s", issue.id)
        return attempts

    def run_iteration_safely(self) -> IterationReport | None:
        try:
            report = self.run_iteration()
        except Exception:
            logger.exception("Automation scheduler error")
            return None
        self.last_report = report
        return report

    # -- loop ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._task = asyncio.create_task(self._automation_loop(), name="automation-scheduler")
        logger.info("Automation scheduler started (interval=%ds)", self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Automation scheduler stopped")

    async def serve(self) -> None:
        """Run the loop in the foreground until cancelled."""
        self._running = True
        self._executor = self._executor or ThreadPoolExecutor(max_workers=1)
        logger.info("Automation daemon running (interval=%ds)", self.interval)
        await self._automation_loop()

    async def _automation_loop(self) -> None:
        """Main loop: iterate → sleep → repeat."""
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                await loop.run_in_executor(self._executor, self.run_iteration_safely)
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Automation loop error")
                await asyncio.sleep(self.interval)

    def status(self) -> dict[str, Any]:
        report = self.last_report
        return {
            "running": self._running,
            "interval_seconds": self.interval,
            "last_status": report.status.value if report else None,
            "last_scan_id": report.scan.scan_id if report and report.scan else None,
        }
