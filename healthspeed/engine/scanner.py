"""Scanner engine — runs registered checkers and dispatches fixes.

A scan:
  1. allocates a scan id and starts the clock
  2. gates each checker on its category (security / performance options)
  3. runs the included checkers, isolating any that blow up
  4. stable-sorts the combined issues by severity
  5. scores them and assembles the ScanResult
"""

from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .checker import Checker, checker_name
from .models import (
    CheckCategory,
    FixResult,
    FixStatus,
    Issue,
    ScanContext,
    ScanOptions,
    ScanResult,
)
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


class ScannerEngine:
    """Owns the ordered checker collection."""

    def __init__(self, scoring: ScoringEngine | None = None, max_workers: int = 1) -> None:
        self.scoring = scoring or ScoringEngine()
        self.max_workers = max(1, max_workers)
        self._checkers: list[Checker] = []

    @property
    def checkers(self) -> list[Checker]:
        return list(self._checkers)

    def register(self, checker: Checker) -> None:
        self._checkers.append(checker)

    # ── Scanning ──────────────────────────────────────────────────────────

    @staticmethod
    def should_run(checker: Checker, options: ScanOptions) -> bool:
        category = checker.category()
        if category is CheckCategory.SECURITY:
            return options.security
        if category is CheckCategory.PERFORMANCE:
            return options.performance
        return True

    def scan(self, options: ScanOptions | None = None) -> ScanResult:
        options = options or ScanOptions()
        scan_id = str(uuid.uuid4())
        t0 = time.perf_counter()
        timestamp = int(time.time())
        context = ScanContext(scan_id=scan_id, options=options)

        included: list[Checker] = []
        skipped: list[str] = []
        failed: list[str] = []
        for checker in self._checkers:
            name = checker_name(checker)
            try:
                run_it = self.should_run(checker, options)
            except Exception:
                logger.exception("Checker %s failed while gating; skipping it", name)
                failed.append(name)
                continue
            if run_it:
                included.append(checker)
            else:
                skipped.append(name)

        outcomes = self._run_checkers(included, context)

        issues: list[Issue] = []
        for checker, found in zip(included, outcomes):
            if found is None:
                failed.append(checker_name(checker))
                continue
            issues.extend(found)

        # sorted() is stable: equal severities keep checker order
        issues = sorted(issues, key=lambda i: i.severity.rank)
        scores = self.scoring.calculate_scores(issues)

        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.info(
            "Scan %s finished in %dms: health=%d speed=%d issues=%d",
            scan_id, duration_ms, scores.health, scores.speed, len(issues),
        )

        return ScanResult(
            scan_id=scan_id,
            timestamp=timestamp,
            duration_ms=duration_ms,
            scores=scores,
            issues=issues,
            details={
                "options": options.to_dict(),
                "checkers_run": [checker_name(c) for c in included],
                "checkers_skipped": skipped,
                "checkers_failed": failed,
            },
        )

    def _run_checkers(
        self, checkers: list[Checker], context: ScanContext,
    ) -> list[list[Issue] | None]:
        """Run checkers, returning results in the same order as ``checkers``."""
        if self.max_workers == 1 or len(checkers) <= 1:
            return [self._run_one(c, context) for c in checkers]

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._run_one, c, context) for c in checkers]
            return [f.result() for f in futures]

    @staticmethod
    def _run_one(checker: Checker, context: ScanContext) -> list[Issue] | None:
        """Run a single checker. None marks a checker that failed."""
        try:
            issues = list(checker.run(context))
        except Exception:
            logger.exception("Checker %s failed; contributing no issues", checker_name(checker))
            return None
        logger.debug("Checker %s reported %d issues", checker_name(checker), len(issues))
        return issues

    # ── Fix dispatch ──────────────────────────────────────────────────────

    def fix_issue(self, action_id: str, params: dict[str, Any] | None = None) -> FixResult:
        """Find the checker that owns ``action_id`` and run its fix.

        The first checker that claims the action decides the result. A
        failure from the owner is returned as-is and no other checker is
        tried.
        """
        params = params or {}
        for checker in self._checkers:
            try:
                outcome = checker.fix(action_id, params)
            except Exception as e:
                logger.exception("Fix %s raised in %s", action_id, checker_name(checker))
                return FixResult.failure(f"{checker_name(checker)} failed to apply {action_id}: {e}")

            if outcome.status is FixStatus.NOT_APPLICABLE:
                continue
            if outcome.status is FixStatus.FAILED:
                logger.warning("Fix %s failed in %s: %s", action_id, checker_name(checker), outcome.reason)
                return FixResult.failure(outcome.reason or f"Fix failed: {action_id}")

            result = outcome.result or FixResult.ok(f"Applied {action_id}")
            logger.info("Fix %s applied by %s", action_id, checker_name(checker))
            return result

        return FixResult.failure(f"No handler found for action: {action_id}")
