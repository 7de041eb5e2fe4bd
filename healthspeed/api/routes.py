"""Local API routes for the desktop UI.

Endpoints:
  POST /api/scan                 — run a scan, persist it, return the result
  GET  /api/scans                — recent scan summaries
  GET  /api/scans/{scan_id}      — one persisted scan
  GET  /api/status               — scores of the last scan + license tier
  POST /api/fix                  — dispatch a fix action
  GET  /api/license              — current license and effective tier
  POST /api/license/activate     — activate Pro with a key
  POST /api/license/trial        — start (or return) the 14-day trial
  POST /api/license/downgrade    — back to Free
  GET  /api/automation           — automation settings + scheduler status
  PUT  /api/automation           — update automation settings
  GET  /api/changelog            — recent changelog entries
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..engine.models import AutomationSettings, ScanOptions
from ..engine.store import InvalidScheduleError, ScanStore
from ..license.manager import InvalidLicenseKeyError, LicenseError, LicenseManager

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request models ───────────────────────────────────────────────────────────


class ScanBody(BaseModel):
    security: bool = True
    performance: bool = True
    quick: bool = False
    exclude_apps: bool = False
    exclude_startup: bool = False
    save: bool = True


class FixBody(BaseModel):
    action_id: str
    params: dict[str, Any] = {}


class ActivateBody(BaseModel):
    key: str


class AutomationBody(BaseModel):
    enabled: bool
    schedule: str = "weekly"
    auto_fix_enabled: bool = False


# ── Helpers ──────────────────────────────────────────────────────────────────


def _store(request: Request) -> ScanStore:
    return request.app.state.store  # type: ignore[no-any-return]


def _licenses(request: Request) -> LicenseManager:
    return request.app.state.license_manager  # type: ignore[no-any-return]


def _license_view(manager: LicenseManager) -> dict[str, Any]:
    try:
        lic = manager.load()
    except LicenseError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return {
        **lic.to_dict(),
        "effective_tier": lic.effective_tier().value,
        "trial_days_remaining": lic.trial_days_remaining(),
    }


# ── Scans ────────────────────────────────────────────────────────────────────


@router.post("/scan")
def run_scan(body: ScanBody, request: Request) -> dict[str, Any]:
    """Run a scan with the given options."""
    options = ScanOptions(
        security=body.security,
        performance=body.performance,
        quick=body.quick,
        exclude_apps=body.exclude_apps,
        exclude_startup=body.exclude_startup,
    )
    engine = request.app.state.engine_factory()
    result = engine.scan(options)
    if body.save:
        _store(request).save_with_deltas(result, "quick" if body.quick else "full")
    return result.to_dict()


@router.get("/scans")
def list_scans(request: Request, limit: int = 10) -> dict[str, Any]:
    return {"scans": [s.to_dict() for s in _store(request).recent_scans(limit)]}


@router.get("/scans/{scan_id}")
def get_scan(scan_id: str, request: Request) -> dict[str, Any]:
    scan = _store(request).get_scan(scan_id)
    if not scan:
        raise HTTPException(status_code=404, detail=f"Scan not found: {scan_id}")
    return scan.to_dict()


@router.get("/status")
def status(request: Request) -> dict[str, Any]:
    last = _store(request).latest_scan()
    return {
        "last_scan": {
            "scan_id": last.scan_id,
            "timestamp": last.timestamp,
            "scores": last.scores.to_dict(),
            "issues": last.count_by_severity(),
        } if last else None,
        "license": _license_view(_licenses(request)),
    }


# ── Fixes ────────────────────────────────────────────────────────────────────


@router.post("/fix")
def fix(body: FixBody, request: Request) -> dict[str, Any]:
    engine = request.app.state.engine_factory()
    result = engine.fix_issue(body.action_id, body.params)
    return {"action_id": body.action_id, **result.to_dict()}


# ── License ──────────────────────────────────────────────────────────────────


@router.get("/license")
def get_license(request: Request) -> dict[str, Any]:
    return _license_view(_licenses(request))


@router.post("/license/activate")
def activate(body: ActivateBody, request: Request) -> dict[str, Any]:
    manager = _licenses(request)
    try:
        manager.activate_pro(body.key)
    except InvalidLicenseKeyError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LicenseError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return _license_view(manager)


@router.post("/license/trial")
def trial(request: Request) -> dict[str, Any]:
    manager = _licenses(request)
    try:
        manager.start_trial()
    except LicenseError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _license_view(manager)


@router.post("/license/downgrade")
def downgrade(request: Request) -> dict[str, Any]:
    manager = _licenses(request)
    try:
        manager.downgrade_to_free()
    except LicenseError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return _license_view(manager)


# ── Automation ───────────────────────────────────────────────────────────────


@router.get("/automation")
def get_automation(request: Request) -> dict[str, Any]:
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "settings": _store(request).get_automation_settings().to_dict(),
        "scheduler": scheduler.status() if scheduler else None,
    }


@router.put("/automation")
def put_automation(body: AutomationBody, request: Request) -> dict[str, Any]:
    try:
        saved = _store(request).set_automation_settings(AutomationSettings(
            enabled=body.enabled,
            schedule=body.schedule,
            auto_fix_enabled=body.auto_fix_enabled,
        ))
    except InvalidScheduleError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    logger.info("Automation settings updated: %s", saved.to_dict())
    return {"settings": saved.to_dict()}


# ── Changelog ────────────────────────────────────────────────────────────────


@router.get("/changelog")
def changelog(request: Request, limit: int = 50) -> dict[str, Any]:
    return {"entries": [e.to_dict() for e in _store(request).get_changelog_entries(limit)]}
