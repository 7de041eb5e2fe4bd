"""SQLite-backed scan history, automation settings and changelog.

One connection per store, shared across threads and guarded by a lock, so
the automation scheduler and a foreground scan never write concurrently.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .models import AutomationSettings, ScanResult, Schedule
from .scoring import compute_deltas

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the persisted store cannot be opened, read or written."""


class InvalidScheduleError(StoreError):
    """Raised when an automation schedule is not daily/weekly/monthly."""


@dataclass
class ScanSummary:
    scan_id: str
    timestamp: int
    duration_ms: int
    health: int
    speed: int
    scan_type: str = "full"

    def to_dict(self) -> dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "health": self.health,
            "speed": self.speed,
            "scan_type": self.scan_type,
        }


@dataclass
class ChangelogEntry:
    timestamp: int
    action: str
    path: str
    size_bytes: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action,
            "path": self.path,
            "size_bytes": self.size_bytes,
            "reason": self.reason,
        }


_SCHEMA = """
    CREATE TABLE IF NOT EXISTS scans (
        scan_id      TEXT PRIMARY KEY,
        timestamp    INTEGER NOT NULL,
        duration_ms  INTEGER NOT NULL,
        health_score INTEGER NOT NULL,
        speed_score  INTEGER NOT NULL,
        health_delta INTEGER,
        speed_delta  INTEGER,
        scan_type    TEXT NOT NULL DEFAULT 'full',
        scan_data    TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_scans_timestamp
        ON scans (timestamp DESC);

    CREATE TABLE IF NOT EXISTS settings (
        id                 INTEGER PRIMARY KEY CHECK (id = 1),
        automation_enabled INTEGER NOT NULL DEFAULT 0,
        run_schedule       TEXT NOT NULL DEFAULT 'weekly',
        auto_fix_enabled   INTEGER NOT NULL DEFAULT 0,
        updated_at         INTEGER NOT NULL
    );

    CREATE TABLE IF NOT EXISTS changelog (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp       INTEGER NOT NULL,
        action          TEXT NOT NULL,
        file_path       TEXT NOT NULL,
        reason          TEXT NOT NULL,
        scan_id         TEXT,
        file_size_bytes INTEGER
    );

    CREATE INDEX IF NOT EXISTS idx_changelog_timestamp
        ON changelog (timestamp DESC);
"""


class ScanStore:
    """Persisted store for scans, automation settings and the changelog."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"failed to create data directory: {e}") from e
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
                self._conn.execute("PRAGMA journal_mode=WAL")
            except sqlite3.Error as e:
                self._conn = None
                raise StoreError(f"failed to open db: {e}") from e
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            try:
                conn = self._get_conn()
                conn.executescript(_SCHEMA)
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"failed to apply schema: {e}") from e

    # ── Scans ─────────────────────────────────────────────────────────────

    def save_scan(self, scan: ScanResult, scan_type: str = "full") -> None:
        """Insert or replace a scan keyed by its scan id."""
        data = json.dumps(scan.to_dict())
        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(
                    "INSERT OR REPLACE INTO scans "
                    "(scan_id, timestamp, duration_ms, health_score, speed_score, "
                    "health_delta, speed_delta, scan_type, scan_data) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        scan.scan_id, scan.timestamp, scan.duration_ms,
                        scan.scores.health, scan.scores.speed,
                        scan.scores.health_delta, scan.scores.speed_delta,
                        scan_type, data,
                    ),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"failed to insert scan: {e}") from e
        logger.debug("Saved scan %s", scan.scan_id)

    def save_with_deltas(self, scan: ScanResult, scan_type: str = "full") -> ScanResult:
        """Fill score deltas against the latest stored scan, then save."""
        with self._lock:
            previous = self.latest_scan()
            scan.scores = compute_deltas(scan.scores, previous.scores if previous else None)
            self.save_scan(scan, scan_type)
        return scan

    def get_scan(self, scan_id: str) -> ScanResult | None:
        row = self._fetchone("SELECT scan_data FROM scans WHERE scan_id = ?", (scan_id,))
        return ScanResult.from_dict(json.loads(row["scan_data"])) if row else None

    def latest_scan(self) -> ScanResult | None:
        row = self._fetchone(
            "SELECT scan_data FROM scans ORDER BY timestamp DESC, rowid DESC LIMIT 1",
        )
        return ScanResult.from_dict(json.loads(row["scan_data"])) if row else None

    def recent_scans(self, limit: int = 10) -> list[ScanSummary]:
        rows = self._fetchall(
            "SELECT scan_id, timestamp, duration_ms, health_score, speed_score, scan_type "
            "FROM scans ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        return [
            ScanSummary(
                scan_id=r["scan_id"],
                timestamp=r["timestamp"],
                duration_ms=r["duration_ms"],
                health=r["health_score"],
                speed=r["speed_score"],
                scan_type=r["scan_type"],
            )
            for r in rows
        ]

    def last_scan_timestamp(self) -> int | None:
        row = self._fetchone("SELECT MAX(timestamp) AS ts FROM scans")
        return row["ts"] if row and row["ts"] is not None else None

    # ── Automation settings ───────────────────────────────────────────────

    def get_automation_settings(self) -> AutomationSettings:
        row = self._fetchone(
            "SELECT automation_enabled, run_schedule, auto_fix_enabled FROM settings WHERE id = 1",
        )
        if not row:
            return AutomationSettings()
        return AutomationSettings(
            enabled=bool(row["automation_enabled"]),
            schedule=row["run_schedule"],
            auto_fix_enabled=bool(row["auto_fix_enabled"]),
        )

    def set_automation_settings(self, settings: AutomationSettings) -> AutomationSettings:
        schedule = settings.schedule.strip().lower()
        if schedule not in {s.value for s in Schedule}:
            raise InvalidScheduleError(f"invalid run schedule: {settings.schedule}")

        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(
                    "INSERT INTO settings "
                    "(id, automation_enabled, run_schedule, auto_fix_enabled, updated_at) "
                    "VALUES (1, ?, ?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET "
                    "automation_enabled = excluded.automation_enabled, "
                    "run_schedule = excluded.run_schedule, "
                    "auto_fix_enabled = excluded.auto_fix_enabled, "
                    "updated_at = excluded.updated_at",
                    (int(settings.enabled), schedule, int(settings.auto_fix_enabled), int(time.time())),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"failed to persist automation settings: {e}") from e

        return AutomationSettings(
            enabled=settings.enabled, schedule=schedule, auto_fix_enabled=settings.auto_fix_enabled,
        )

    # ── Changelog ─────────────────────────────────────────────────────────

    def record_change(
        self,
        action: str,
        path: str,
        reason: str,
        scan_id: str | None = None,
        size_bytes: int | None = None,
    ) -> None:
        """Append one changelog entry. Entries are never updated."""
        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(
                    "INSERT INTO changelog "
                    "(timestamp, action, file_path, reason, scan_id, file_size_bytes) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (int(time.time()), action, path, reason, scan_id, size_bytes),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"failed to append changelog: {e}") from e

    def get_changelog_entries(self, limit: int = 50) -> list[ChangelogEntry]:
        rows = self._fetchall(
            "SELECT timestamp, action, file_path, file_size_bytes, reason "
            "FROM changelog ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [
            ChangelogEntry(
                timestamp=r["timestamp"],
                action=r["action"].upper(),
                path=r["file_path"],
                size_bytes=r["file_size_bytes"] or 0,
                reason=r["reason"],
            )
            for r in rows
        ]

    # ── Helpers ───────────────────────────────────────────────────────────

    def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._get_conn().execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"query failed: {e}") from e

    def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._get_conn().execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"query failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None
