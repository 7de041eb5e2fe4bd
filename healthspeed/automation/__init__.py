"""Automation subsystem — license-gated scheduled scans and auto-fix."""

from .scheduler import (
    AutoFixAttempt,
    AutomationScheduler,
    IterationReport,
    IterationStatus,
    interval_seconds,
    scan_due,
)
