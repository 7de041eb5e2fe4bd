"""Scan data model — issues, fix actions, options, scores and results.

Everything a checker produces or the engine assembles is a plain dataclass.
ScanResult round-trips through ``to_dict`` / ``from_dict`` so the store can
persist it verbatim as JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ── Enums ────────────────────────────────────────────────────────────────────


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort key: Critical first, Info last."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}


class ImpactCategory(str, Enum):
    SECURITY = "security"
    PERFORMANCE = "performance"
    PRIVACY = "privacy"
    BOTH = "both"


class CheckCategory(str, Enum):
    SECURITY = "security"
    PERFORMANCE = "performance"
    PRIVACY = "privacy"
    FIRMWARE = "firmware"
    THREAT = "threat"
    COMPLIANCE = "compliance"


class Schedule(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def interval_seconds(self) -> int:
        # Fixed-second approximation, not calendar aware
        return {
            Schedule.DAILY: 86_400,
            Schedule.WEEKLY: 7 * 86_400,
            Schedule.MONTHLY: 30 * 86_400,
        }[self]


# ── Issues ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FixAction:
    """A remediation the owning checker knows how to execute.

    ``auto_fixable`` means the action is safe to run without asking the user.
    """

    action_id: str
    label: str
    auto_fixable: bool = False
    params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action_id": self.action_id,
            "label": self.label,
            "auto_fixable": self.auto_fixable,
            "params": dict(self.params),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FixAction:
        return cls(
            action_id=data["action_id"],
            label=data.get("label", ""),
            auto_fixable=bool(data.get("auto_fixable", False)),
            params=data.get("params") or {},
        )


@dataclass(frozen=True)
class Issue:
    """One detected problem, created by a single checker during a scan."""

    id: str
    severity: Severity
    title: str
    description: str
    impact: ImpactCategory
    fix: FixAction | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "impact": self.impact.value,
            "fix": self.fix.to_dict() if self.fix else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        fix = data.get("fix")
        return cls(
            id=data["id"],
            severity=Severity(data["severity"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            impact=ImpactCategory(data["impact"]),
            fix=FixAction.from_dict(fix) if fix else None,
        )


# ── Scan lifecycle ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ScanOptions:
    security: bool = True
    performance: bool = True
    quick: bool = False
    exclude_apps: bool = False
    exclude_startup: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "security": self.security,
            "performance": self.performance,
            "quick": self.quick,
            "exclude_apps": self.exclude_apps,
            "exclude_startup": self.exclude_startup,
        }


@dataclass(frozen=True)
class ScanContext:
    """Read-only view of the running scan handed to every checker."""

    scan_id: str
    options: ScanOptions


@dataclass
class SystemScores:
    health: int
    speed: int
    health_delta: int | None = None
    speed_delta: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": self.health,
            "speed": self.speed,
            "health_delta": self.health_delta,
            "speed_delta": self.speed_delta,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SystemScores:
        return cls(
            health=int(data["health"]),
            speed=int(data["speed"]),
            health_delta=data.get("health_delta"),
            speed_delta=data.get("speed_delta"),
        )


@dataclass
class ScanResult:
    """Outcome of one scan. Persisted verbatim by the store."""

    scan_id: str
    timestamp: int
    duration_ms: int
    scores: SystemScores
    issues: list[Issue] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def worst_severity(self) -> Severity | None:
        """Most severe issue found, or None for a clean scan."""
        if not self.issues:
            return None
        return min((i.severity for i in self.issues), key=lambda s: s.rank)

    def count_by_severity(self) -> dict[str, int]:
        counts = {s.value: 0 for s in Severity}
        for issue in self.issues:
            counts[issue.severity.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "scores": self.scores.to_dict(),
            "issues": [i.to_dict() for i in self.issues],
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanResult:
        return cls(
            scan_id=data["scan_id"],
            timestamp=int(data["timestamp"]),
            duration_ms=int(data.get("duration_ms", 0)),
            scores=SystemScores.from_dict(data["scores"]),
            issues=[Issue.from_dict(i) for i in data.get("issues", [])],
            details=data.get("details") or {},
        )


# ── Fixes ────────────────────────────────────────────────────────────────────


@dataclass
class FixResult:
    success: bool
    message: str
    rollback_available: bool = False
    restore_point_id: str | None = None

    @classmethod
    def ok(cls, message: str) -> FixResult:
        return cls(success=True, message=message)

    @classmethod
    def failure(cls, message: str) -> FixResult:
        return cls(success=False, message=message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "rollback_available": self.rollback_available,
            "restore_point_id": self.restore_point_id,
        }


class FixStatus(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class FixOutcome:
    """What a checker says about a fix request.

    NOT_APPLICABLE means "not my action" and lets dispatch try the next
    checker. FAILED means the checker owns the action and the remediation
    did not work; dispatch stops there.
    """

    status: FixStatus
    result: FixResult | None = None
    reason: str = ""

    @classmethod
    def not_applicable(cls) -> FixOutcome:
        return cls(status=FixStatus.NOT_APPLICABLE)

    @classmethod
    def failed(cls, reason: str) -> FixOutcome:
        return cls(status=FixStatus.FAILED, reason=reason)

    @classmethod
    def succeeded(cls, result: FixResult | str) -> FixOutcome:
        if isinstance(result, str):
            result = FixResult.ok(result)
        return cls(status=FixStatus.SUCCEEDED, result=result)

    @property
    def is_owned(self) -> bool:
        return self.status is not FixStatus.NOT_APPLICABLE


# ── Automation ───────────────────────────────────────────────────────────────


@dataclass
class AutomationSettings:
    enabled: bool = False
    schedule: str = Schedule.WEEKLY.value
    auto_fix_enabled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "schedule": self.schedule,
            "auto_fix_enabled": self.auto_fix_enabled,
        }
