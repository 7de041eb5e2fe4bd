"""Built-in checkers and the default engine wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..engine.scanner import ScannerEngine
from ..engine.scoring import ScoringEngine
from .bottleneck import BottleneckAnalyzer
from .firewall import FirewallChecker
from .network import NetworkChecker
from .os_update import OsUpdateChecker
from .ports import PortScanner
from .smart_disk import SmartDiskChecker
from .startup import StartupAnalyzer
from .storage import StorageChecker

if TYPE_CHECKING:
    from ..config import Settings


def build_default_engine(settings: Settings) -> ScannerEngine:
    """Engine with every built-in checker registered."""
    engine = ScannerEngine(scoring=ScoringEngine(), max_workers=settings.scan_workers)
    engine.register(FirewallChecker(timeout=settings.fix_timeout_seconds))
    engine.register(OsUpdateChecker(timeout=settings.fix_timeout_seconds))
    engine.register(StartupAnalyzer())
    engine.register(PortScanner())
    engine.register(NetworkChecker(
        probe_url=settings.network_probe_url,
        probe_host=settings.network_probe_host,
        timeout=settings.network_timeout_seconds,
    ))
    engine.register(StorageChecker())
    engine.register(SmartDiskChecker(timeout=settings.fix_timeout_seconds))
    engine.register(BottleneckAnalyzer())
    return engine
