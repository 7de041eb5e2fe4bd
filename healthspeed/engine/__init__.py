"""Scan engine — checker contract, scanner, scoring, SQLite store."""

from .checker import Checker, checker_name
from .models import (
    AutomationSettings,
    CheckCategory,
    FixAction,
    FixOutcome,
    FixResult,
    FixStatus,
    ImpactCategory,
    Issue,
    ScanContext,
    ScanOptions,
    ScanResult,
    Schedule,
    Severity,
    SystemScores,
)
from .scanner import ScannerEngine
from .scoring import DEFAULT_WEIGHTS, ScoringEngine, compute_deltas
from .store import InvalidScheduleError, ScanStore, StoreError
