"""Port scanner — flags risky services listening on the host."""

from __future__ import annotations

import logging
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

logger = logging.getLogger(__name__)

RISKY_PORTS: dict[int, str] = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    135: "RPC",
    139: "NetBIOS",
    445: "SMB",
    3389: "RDP",
    5900: "VNC",
}

_PORT_SEVERITY = {
    3389: Severity.CRITICAL,
    22: Severity.CRITICAL,
    23: Severity.CRITICAL,
    445: Severity.WARNING,
    139: Severity.WARNING,
}


def listening_ports() -> set[int]:
    """Local TCP ports in LISTEN state on a non-loopback address."""
    ports: set[int] = set()
    for conn in psutil.net_connections(kind="tcp"):
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        if conn.laddr.ip in ("127.0.0.1", "::1"):
            continue
        ports.add(conn.laddr.port)
    return ports


class PortScanner(Checker):
    fix_action_prefixes = ("close_port_",)

    def name(self) -> str:
        return "port_scanner"

    def category(self) -> CheckCategory:
        return CheckCategory.SECURITY

    def run(self, context: ScanContext) -> list[Issue]:
        if context.options.quick:
            return []

        issues = []
        for port in sorted(listening_ports()):
            service = RISKY_PORTS.get(port)
            if service is None:
                continue
            issues.append(Issue(
                id=f"port_open_{port}",
                severity=_PORT_SEVERITY.get(port, Severity.INFO),
                title=f"Port {port} ({service}) is open",
                description=(
                    f"{service} is listening on port {port} and reachable from the network. "
                    "Close it unless you need remote access to this machine."
                ),
                impact=ImpactCategory.SECURITY,
                fix=FixAction(
                    action_id=f"close_port_{port}",
                    label="Close Port",
                    auto_fixable=False,
                    params={"port": port, "service": service},
                ),
            ))
        return issues

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        port = action_id.removeprefix("close_port_")
        return FixOutcome.failed(
            f"Port {port} must be closed manually: stop the service listening on it "
            "or add a firewall rule blocking inbound traffic."
        )
