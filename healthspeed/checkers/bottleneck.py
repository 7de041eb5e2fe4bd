"""Bottleneck analyzer — honest hardware limits (RAM size and pressure).

Only reports what software can't fix when it really is the hardware.
"""

from __future__ import annotations

from typing import Any

import psutil

from ..engine.checker import Checker
from ..engine.models import (
    CheckCategory,
    FixAction,
    FixOutcome,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)

GB = 1024 ** 3
LOW_RAM_GB = 8
RAM_EXHAUSTION_PERCENT = 90.0


class BottleneckAnalyzer(Checker):
    fix_actions = ("show_ram_guide", "analyze_ram_hogs")

    def name(self) -> str:
        return "bottleneck_analyzer"

    def category(self) -> CheckCategory:
        return CheckCategory.PERFORMANCE

    def run(self, context: ScanContext) -> list[Issue]:
        mem = psutil.virtual_memory()
        total_gb = mem.total / GB
        issues = []

        if total_gb < LOW_RAM_GB:
            issues.append(Issue(
                id="bottleneck_low_ram",
                severity=Severity.WARNING if total_gb < 4 else Severity.INFO,
                title=f"Only {total_gb:.1f} GB of RAM installed",
                description=(
                    "Modern browsers and apps routinely need more than this. "
                    "A RAM upgrade is the most effective speed-up for this machine."
                ),
                impact=ImpactCategory.PERFORMANCE,
                fix=FixAction(action_id="show_ram_guide", label="RAM Upgrade Guide"),
            ))

        if mem.percent >= RAM_EXHAUSTION_PERCENT:
            issues.append(Issue(
                id="bottleneck_ram_exhaustion",
                severity=Severity.WARNING,
                title=f"Memory is {mem.percent:.0f}% used",
                description="The system is swapping to disk, which makes everything slow.",
                impact=ImpactCategory.PERFORMANCE,
                fix=FixAction(action_id="analyze_ram_hogs", label="Show Memory Hogs"),
            ))
        return issues

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        if action_id == "analyze_ram_hogs":
            top = sorted(
                psutil.process_iter(["name", "memory_info"]),
                key=lambda p: p.info["memory_info"].rss if p.info["memory_info"] else 0,
                reverse=True,
            )[:5]
            names = ", ".join(p.info["name"] or "?" for p in top)
            return FixOutcome.succeeded(f"Largest memory users: {names}")
        return FixOutcome.succeeded(
            "Check your motherboard manual for the supported RAM type and maximum capacity."
        )
