"""Network checker — connectivity, latency and DNS resolution time."""

from __future__ import annotations

import logging
import socket
import time
from typing import Any

import httpx

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

HIGH_LATENCY_MS = 150
CRITICAL_LATENCY_MS = 300
SLOW_DNS_MS = 100

_DNS_FIX = FixAction(action_id="fix_dns", label="Show DNS Fix Instructions")


class NetworkChecker(Checker):
    fix_actions = ("fix_dns",)

    def __init__(
        self,
        probe_url: str = "https://www.cloudflare.com/cdn-cgi/trace",
        probe_host: str = "example.com",
        timeout: float = 5.0,
    ) -> None:
        self.probe_url = probe_url
        self.probe_host = probe_host
        self.timeout = timeout

    def name(self) -> str:
        return "network_checker"

    def category(self) -> CheckCategory:
        return CheckCategory.PERFORMANCE

    def measure_latency(self) -> float | None:
        """Round-trip of a HEAD request in ms, or None when unreachable."""
        t0 = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                client.head(self.probe_url)
        except httpx.HTTPError as e:
            logger.debug("Latency probe failed: %s", e)
            return None
        return (time.perf_counter() - t0) * 1000

    def measure_dns(self) -> float | None:
        t0 = time.perf_counter()
        try:
            socket.getaddrinfo(self.probe_host, None)
        except OSError as e:
            logger.debug("DNS probe failed: %s", e)
            return None
        return (time.perf_counter() - t0) * 1000

    def run(self, context: ScanContext) -> list[Issue]:
        issues = []

        if not context.options.quick:
            latency = self.measure_latency()
            if latency is None:
                issues.append(Issue(
                    id="network_no_connection",
                    severity=Severity.CRITICAL,
                    title="No Internet Connection",
                    description="Unable to reach external servers. Check your network connection.",
                    impact=ImpactCategory.PERFORMANCE,
                ))
            elif latency > HIGH_LATENCY_MS:
                issues.append(Issue(
                    id="network_high_latency",
                    severity=Severity.CRITICAL if latency > CRITICAL_LATENCY_MS else Severity.WARNING,
                    title=f"High Network Latency ({latency:.0f}ms)",
                    description=(
                        f"Your network latency is {latency:.0f}ms. Good latency is under 50ms. "
                        "This may cause lag in online activities."
                    ),
                    impact=ImpactCategory.PERFORMANCE,
                ))

        dns_ms = self.measure_dns()
        if dns_ms is None:
            issues.append(Issue(
                id="network_dns_failure",
                severity=Severity.CRITICAL,
                title="DNS Resolution Failure",
                description="Unable to resolve domain names. Your DNS server may be unavailable.",
                impact=ImpactCategory.PERFORMANCE,
                fix=_DNS_FIX,
            ))
        elif dns_ms > SLOW_DNS_MS:
            issues.append(Issue(
                id="network_slow_dns",
                severity=Severity.INFO,
                title=f"Slow DNS Resolution ({dns_ms:.0f}ms)",
                description=(
                    f"DNS lookups are taking {dns_ms:.0f}ms. Consider switching to faster DNS "
                    "servers like Cloudflare (1.1.1.1) or Google (8.8.8.8)."
                ),
                impact=ImpactCategory.PERFORMANCE,
                fix=_DNS_FIX,
            ))
        return issues

    def fix(self, action_id: str, params: dict[str, Any]) -> FixOutcome:
        if not self.owns_action(action_id):
            return FixOutcome.not_applicable()
        return FixOutcome.failed(
            "DNS must be changed manually: set your network connection's DNS servers "
            "to 1.1.1.1 and 1.0.0.1 (Cloudflare) or 8.8.8.8 and 8.8.4.4 (Google)."
        )
