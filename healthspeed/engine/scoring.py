"""Scoring engine — turns an issue list into health and speed scores.

Pure function of its inputs: the weight table is passed in, never read from
global state. Deltas against a previous scan are the caller's job; see
``compute_deltas``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

from .models import ImpactCategory, Issue, Severity, SystemScores

# Per-issue multipliers. Anything not listed weighs 1.0.
DEFAULT_WEIGHTS: Mapping[str, float] = {
    "windows_update_pending": 1.5,
    "firewall_disabled": 2.0,
    "rdp_port_open": 2.0,
    "port_open_3389": 2.0,
    "excessive_startup_items": 0.8,
}

SECURITY_PENALTY = {Severity.CRITICAL: 20.0, Severity.WARNING: 10.0, Severity.INFO: 2.0}
PERFORMANCE_PENALTY = {Severity.CRITICAL: 25.0, Severity.WARNING: 12.0, Severity.INFO: 3.0}
BOTH_PENALTY = 15.0  # severity-independent, hits both scores


def _clamp_floor(value: float) -> int:
    return int(math.floor(min(100.0, max(0.0, value))))


class ScoringEngine:
    """Computes SystemScores from issues using a static weight table."""

    def __init__(self, weights: Mapping[str, float] | None = None) -> None:
        self.weights: Mapping[str, float] = dict(DEFAULT_WEIGHTS if weights is None else weights)

    def weight(self, issue_id: str) -> float:
        return self.weights.get(issue_id, 1.0)

    def calculate_scores(self, issues: Iterable[Issue]) -> SystemScores:
        health = 100.0
        speed = 100.0

        for issue in issues:
            w = self.weight(issue.id)
            if issue.impact is ImpactCategory.SECURITY:
                health -= SECURITY_PENALTY[issue.severity] * w
            elif issue.impact is ImpactCategory.PERFORMANCE:
                speed -= PERFORMANCE_PENALTY[issue.severity] * w
            elif issue.impact is ImpactCategory.BOTH:
                health -= BOTH_PENALTY * w
                speed -= BOTH_PENALTY * w
            # Privacy issues are reported but do not move either score

        return SystemScores(health=_clamp_floor(health), speed=_clamp_floor(speed))


def compute_deltas(scores: SystemScores, previous: SystemScores | None) -> SystemScores:
    """Return a copy of ``scores`` with deltas against ``previous`` filled in."""
    if previous is None:
        return SystemScores(health=scores.health, speed=scores.speed)
    return SystemScores(
        health=scores.health,
        speed=scores.speed,
        health_delta=scores.health - previous.health,
        speed_delta=scores.speed - previous.speed,
    )
