"""OS update checker — pending operating-system updates."""

from __future__ import annotations

import logging
import sys
from typing import Any

from ..engine.checker import Checker
from ..engine.command import DEFAULT_TIMEOUT_SECONDS, CommandError, run_with_timeout
from ..engine.models import (
    CheckCategory,
    FixAction,
    FixOutcome,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)

logger = logging.getLogger(__name__)

CRITICAL_PENDING_COUNT = 5

_COMMANDS: dict[str, list[str]] = {
    "win32": [
        "powershell", "-NoProfile", "-Command",
        "(New-Object -ComObject Microsoft.Update.Session)"
        ".CreateUpdateSearcher().Search('IsInstalled=0').Updates.Count",
    ],
    "darwin": ["softwareupdate", "--list"],
    "linux": ["apt-get", "--simulate", "upgrade"],
}

_INSTRUCTIONS = {
    "win32": "Open Settings > Windows Update and install the pending updates.",
    "darwin": "Open System Settings > General > Software Update and install the pending updates.",
    "linux": "Run 'sudo apt-get upgrade' or use your distribution's update manager.",
}


def parse_pending_updates(platform: str, output: str) -> int | None:
    """Number of pending updates, or None when the output is not recognised."""
    if platform == "win32":
        text = output.strip()
        return int(text) if text.isdigit() else None
    if platform == "darwin":
        if "no new software available" in output.lower():
            return 0
        count = sum(1 for line in output.splitlines() if line.lstrip().startswith("* "))
        return count if count else None
    # apt-get --simulate prints one "Inst" line per package to upgrade
    lines = output.splitlines()
    if not any(line.startswith(("Reading", "Building", "Calculating", "0 upgraded")) for line in lines):
        return None
    return sum(1 for line in lines if line.startswith("Inst "))


class OsUpdateChecker(Checker):
    fix_actions = ("install_updates",)

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, platform: str | None = None) -> None:
        self.timeout = timeout
        self.platform = platform or ("linux" if sys.platform.startswith("linux") else sys.platform)

    def name(self) -> str:
        return "os_update_checker"

    def category(self) -> CheckCategory:
        return CheckCategory.SECURITY

    @property
    def issue_id(self) -> str:
        return "windows_update_pending" if self.platform == "win32" else "os_update_pending"

    def run(self, context: ScanContext) -> list[Issue]:
        # Searching for updates is slow on every platform
        if context.options.quick:
            return []

        cmd = _COMMANDS.get(self.platform)
        if not cmd:
            return []

        try:
            out = run_with_timeout(cmd, self.timeout)
        except CommandError as e:
            logger.debug("Update status unavailable: %s", e)
            return []

        pending = parse_pending_updates(self.platform, out.stdout)
        if not pending:
            return []

        return [Issue(
            id=self.issue_id,
            severity=Severity.CRITICAL if pending > CRITICAL_PENDING_COUNT else Severity.WARNING,
            title=f"{pending} system updates available",
            description=(
                "Keeping the operating system updated is critical for security. "
                "Updates often include patches for vulnerabilities."
            ),
            impact=ImpactCategory.SECURITY,
            fix=FixAction(
                action_id="install_updates",
                label="Install Updates",
                auto_fixable=False,
                params={"count": pending},
            ),
        )]

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        return FixOutcome.failed(
            "Updates must be installed manually. "
            + _INSTRUCTIONS.get(self.platform, "Use your system's update manager.")
        )
