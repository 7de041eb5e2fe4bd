"""Shared test fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from healthspeed.config import Settings
from healthspeed.engine.checker import Checker
from healthspeed.engine.models import (
    CheckCategory,
    FixAction,
    FixOutcome,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)
from healthspeed.engine.scanner import ScannerEngine
from healthspeed.engine.store import ScanStore
from healthspeed.license.manager import LicenseManager

FIXED_NOW = 1_700_000_000

# Valid keys: last char of the final segment is sum(base36(payload)) mod 36
VALID_KEY = "HSPC-1234-5678-9ABC-DEF6"
BAD_CHECKSUM_KEY = "HSPC-1234-5678-9ABC-DEF0"


def make_issue(
    id: str = "issue",
    severity: Severity = Severity.WARNING,
    impact: ImpactCategory = ImpactCategory.SECURITY,
    fix: FixAction | None = None,
) -> Issue:
    return Issue(
        id=id,
        severity=severity,
        title=id.replace("_", " ").title(),
        description=f"{id} description",
        impact=impact,
        fix=fix,
    )


class FakeChecker(Checker):
    """Checker returning canned issues and fix outcomes."""

    def __init__(
        self,
        name: str = "fake",
        category: CheckCategory = CheckCategory.SECURITY,
        issues: list[Issue] | None = None,
        fixes: dict[str, FixOutcome] | None = None,
        error: Exception | None = None,
        fix_error: Exception | None = None,
    ) -> None:
        self._name = name
        self._category = category
        self._issues = issues or []
        self._fixes = fixes or {}
        self._error = error
        self._fix_error = fix_error
        self.runs: list[ScanContext] = []
        self.fix_calls: list[tuple[str, dict[str, Any]]] = []

    def name(self) -> str:
        return self._name

    def category(self) -> CheckCategory:
        return self._category

    def run(self, context: ScanContext) -> list[Issue]:
        self.runs.append(context)
        if self._error:
            raise self._error
        return list(self._issues)

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        self.fix_calls.append((action_id, params))
        if self._fix_error:
            raise self._fix_error
        return self._fixes.get(action_id, FixOutcome.not_applicable())


def make_engine(*checkers: Checker, max_workers: int = 1) -> ScannerEngine:
    engine = ScannerEngine(max_workers=max_workers)
    for c in checkers:
        engine.register(c)
    return engine


@pytest.fixture
def store(tmp_path) -> ScanStore:
    s = ScanStore(tmp_path / "app.db")
    yield s
    s.close()


@pytest.fixture
def clock():
    """Mutable fixed clock: set ``clock.now`` to move time."""

    class _Clock:
        now: float = FIXED_NOW

        def __call__(self) -> float:
            return self.now

    return _Clock()


@pytest.fixture
def license_manager(tmp_path, clock) -> LicenseManager:
    return LicenseManager(tmp_path / "license.json", clock=clock)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path, automation_interval_seconds=3600)
