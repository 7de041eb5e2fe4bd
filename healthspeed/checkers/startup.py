"""Startup analyzer — counts programs launched at login (XDG autostart / LaunchAgents)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

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

MAX_STARTUP_ITEMS = 15


@dataclass
class StartupItem:
    name: str
    path: Path


def _is_hidden(desktop_file: Path) -> bool:
    try:
        text = desktop_file.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    lines = {line.strip().lower() for line in text.splitlines()}
    return "hidden=true" in lines or "x-gnome-autostart-enabled=false" in lines


class StartupAnalyzer(Checker):
    fix_actions = ("optimize_startup",)
    fix_action_prefixes = ("disable_startup_",)

    def __init__(self, home: Path | None = None, system_dirs: list[Path] | None = None) -> None:
        self.home = home or Path.home()
        self.system_dirs = system_dirs if system_dirs is not None else [Path("/etc/xdg/autostart")]

    @property
    def user_autostart_dir(self) -> Path:
        return self.home / ".config" / "autostart"

    def name(self) -> str:
        return "startup_analyzer"

    def category(self) -> CheckCategory:
        return CheckCategory.PERFORMANCE

    def startup_items(self) -> list[StartupItem]:
        """Enabled autostart entries; user entries shadow system ones by filename."""
        entries: dict[str, Path] = {}
        for directory in [*self.system_dirs, self.user_autostart_dir]:
            if directory.is_dir():
                for f in sorted(directory.glob("*.desktop")):
                    entries[f.name] = f

        agents = self.home / "Library" / "LaunchAgents"
        if agents.is_dir():
            for f in sorted(agents.glob("*.plist")):
                entries[f.name] = f

        return [
            StartupItem(name=Path(fname).stem, path=path)
            for fname, path in entries.items()
            if path.suffix != ".desktop" or not _is_hidden(path)
        ]

    def run(self, context: ScanContext) -> list[Issue]:
        if context.options.exclude_startup:
            return []

        items = self.startup_items()
        if len(items) <= MAX_STARTUP_ITEMS:
            return []

        return [Issue(
            id="excessive_startup_items",
            severity=Severity.WARNING,
            title=f"{len(items)} apps slow your boot",
            description=(
                f"You have {len(items)} programs starting at login. Each adds 0.5-2 seconds "
                "to boot time. Consider disabling unnecessary ones."
            ),
            impact=ImpactCategory.PERFORMANCE,
            fix=FixAction(
                action_id="optimize_startup",
                label="Optimize Startup",
                auto_fixable=False,
                params={"count": len(items), "items": [i.name for i in items[:10]]},
            ),
        )]

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        if action_id == "optimize_startup":
            return FixOutcome.failed(
                "Manual fix required. Disable unneeded programs from your desktop's startup settings."
            )
        return self._disable(action_id.removeprefix("disable_startup_"))

    def _disable(self, name: str) -> FixOutcome:
        """Hide an XDG autostart entry by writing a user override with Hidden=true."""
        match = next(
            (i for i in self.startup_items() if i.name == name and i.path.suffix == ".desktop"),
            None,
        )
        if match is None:
            return FixOutcome.failed(f"Startup item not found: {name}")

        target = self.user_autostart_dir / match.path.name
        try:
            content = match.path.read_text(encoding="utf-8", errors="replace")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content.rstrip("\n") + "\nHidden=true\n", encoding="utf-8")
        except OSError as e:
            return FixOutcome.failed(f"Failed to disable {name}: {e}")

        logger.info("Disabled startup item %s via %s", name, target)
        return FixOutcome.succeeded(FixResult(
            success=True,
            message=f"Disabled {name} at login",
            rollback_available=True,
        ))
