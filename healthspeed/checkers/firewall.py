"""Firewall checker — is the host firewall switched on?"""

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
    FixResult,
    ImpactCategory,
    Issue,
    ScanContext,
    Severity,
)

logger = logging.getLogger(__name__)

_MAC_FW = "/usr/libexec/ApplicationFirewall/socketfilterfw"

# (status command, enable command) per platform
_COMMANDS: dict[str, tuple[list[str], list[str]]] = {
    "win32": (
        ["netsh", "advfirewall", "show", "allprofiles", "state"],
        ["netsh", "advfirewall", "set", "allprofiles", "state", "on"],
    ),
    "darwin": (
        [_MAC_FW, "--getglobalstate"],
        [_MAC_FW, "--setglobalstate", "on"],
    ),
    "linux": (
        ["ufw", "status"],
        ["ufw", "--force", "enable"],
    ),
}


def parse_firewall_state(platform: str, output: str) -> bool | None:
    """Return True/False for on/off, None when the output is not recognised."""
    text = output.lower()
    if platform == "win32":
        if "state" not in text:
            return None
        # Any profile reporting OFF counts as disabled
        return " off" not in text
    if platform == "darwin":
        if "enabled" in text:
            return True
        if "disabled" in text:
            return False
        return None
    if "status: active" in text:
        return True
    if "status: inactive" in text:
        return False
    return None


class FirewallChecker(Checker):
    fix_actions = ("enable_firewall",)

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, platform: str | None = None) -> None:
        self.timeout = timeout
        self.platform = platform or ("linux" if sys.platform.startswith("linux") else sys.platform)

    def name(self) -> str:
        return "firewall_checker"

    def category(self) -> CheckCategory:
        return CheckCategory.SECURITY

    def run(self, context: ScanContext) -> list[Issue]:
        commands = _COMMANDS.get(self.platform)
        if not commands:
            return []

        try:
            out = run_with_timeout(commands[0], self.timeout)
        except CommandError as e:
            logger.debug("Firewall status unavailable: %s", e)
            return []

        if parse_firewall_state(self.platform, out.stdout) is not False:
            return []

        return [Issue(
            id="firewall_disabled",
            severity=Severity.CRITICAL,
            title="Firewall is OFF",
            description="Your firewall is disabled. Incoming connections are not being filtered.",
            impact=ImpactCategory.SECURITY,
            fix=FixAction(action_id="enable_firewall", label="Turn On Firewall", auto_fixable=True),
        )]

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()

        commands = _COMMANDS.get(self.platform)
        if not commands:
            return FixOutcome.failed(f"Firewall fix not supported on {self.platform}")

        try:
            out = run_with_timeout(commands[1], self.timeout)
        except CommandError as e:
            return FixOutcome.failed(f"Failed to enable firewall: {e}")

        if not out.ok:
            return FixOutcome.failed(
                f"Failed to enable firewall: {out.stderr.strip() or out.stdout.strip()}. "
                "Try running as administrator."
            )
        return FixOutcome.succeeded(FixResult.ok("Firewall enabled"))
