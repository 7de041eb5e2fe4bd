"""Tests for the FastAPI routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from healthspeed.api.server import create_app
from healthspeed.engine.models import (
    CheckCategory,
    FixAction,
    FixOutcome,
    ImpactCategory,
    Severity,
)

from conftest import BAD_CHECKSUM_KEY, VALID_KEY, FakeChecker, make_engine, make_issue


@pytest.fixture
def client(test_settings):
    sec = FakeChecker("sec", CheckCategory.SECURITY, [
        make_issue("firewall_disabled", Severity.CRITICAL,
                   fix=FixAction("enable_firewall", "Turn On Firewall", auto_fixable=True)),
    ], fixes={"enable_firewall": FixOutcome.succeeded("Firewall enabled")})
    perf = FakeChecker("perf", CheckCategory.PERFORMANCE, [
        make_issue("slow_dns", Severity.INFO, ImpactCategory.PERFORMANCE),
    ], fixes={"fix_dns": FixOutcome.failed("manual fix required")})

    app = create_app(test_settings, engine_factory=lambda: make_engine(sec, perf))
    with TestClient(app) as c:
        yield c


class TestScans:
    def test_scan(self, client) -> None:
        r = client.post("/api/scan", json={})
        assert r.status_code == 200
        data = r.json()
        assert [i["id"] for i in data["issues"]] == ["firewall_disabled", "slow_dns"]
        assert data["scores"] == {"health": 60, "speed": 97, "health_delta": None, "speed_delta": None}

    def test_scan_options_gate_checkers(self, client) -> None:
        data = client.post("/api/scan", json={"performance": False}).json()
        assert [i["id"] for i in data["issues"]] == ["firewall_disabled"]
        assert data["details"]["checkers_skipped"] == ["perf"]

    def test_history_and_deltas(self, client) -> None:
        first = client.post("/api/scan", json={}).json()
        second = client.post("/api/scan", json={"security": False}).json()
        assert second["scores"]["health_delta"] == 40

        scans = client.get("/api/scans").json()["scans"]
        assert {s["scan_id"] for s in scans} == {first["scan_id"], second["scan_id"]}

        r = client.get(f"/api/scans/{first['scan_id']}")
        assert r.status_code == 200
        assert r.json()["scan_id"] == first["scan_id"]

    def test_unsaved_scan(self, client) -> None:
        data = client.post("/api/scan", json={"save": False}).json()
        assert client.get(f"/api/scans/{data['scan_id']}").status_code == 404

    def test_missing_scan(self, client) -> None:
        assert client.get("/api/scans/nope").status_code == 404

    def test_status(self, client) -> None:
        assert client.get("/api/status").json()["last_scan"] is None
        client.post("/api/scan", json={})
        status = client.get("/api/status").json()
        assert status["last_scan"]["issues"] == {"critical": 1, "warning": 0, "info": 1}
        assert status["license"]["effective_tier"] == "free"


class TestFix:
    def test_success(self, client) -> None:
        data = client.post("/api/fix", json={"action_id": "enable_firewall"}).json()
        assert data["success"] is True
        assert data["message"] == "Firewall enabled"

    def test_owner_failure(self, client) -> None:
        data = client.post("/api/fix", json={"action_id": "fix_dns"}).json()
        assert data["success"] is False
        assert data["message"] == "manual fix required"

    def test_unknown_action(self, client) -> None:
        data = client.post("/api/fix", json={"action_id": "nonexistent_action"}).json()
        assert data["success"] is False
        assert "No handler found" in data["message"]


class TestLicense:
    def test_default_free(self, client) -> None:
        data = client.get("/api/license").json()
        assert data["tier"] == "free"
        assert data["effective_tier"] == "free"

    def test_activate(self, client) -> None:
        r = client.post("/api/license/activate", json={"key": VALID_KEY})
        assert r.status_code == 200
        assert r.json()["effective_tier"] == "pro"

    def test_activate_invalid(self, client) -> None:
        r = client.post("/api/license/activate", json={"key": BAD_CHECKSUM_KEY})
        assert r.status_code == 400

    def test_trial_and_downgrade(self, client) -> None:
        trial = client.post("/api/license/trial").json()
        assert trial["effective_tier"] == "trial"
        assert trial["trial_days_remaining"] in (13, 14)
        again = client.post("/api/license/trial").json()
        assert again["expires_at"] == trial["expires_at"]

        assert client.post("/api/license/downgrade").json()["tier"] == "free"

    def test_trial_with_pro_conflicts(self, client) -> None:
        client.post("/api/license/activate", json={"key": VALID_KEY})
        assert client.post("/api/license/trial").status_code == 409

    def test_corrupt_license_file(self, client, test_settings) -> None:
        test_settings.license_path.write_text("not json", encoding="utf-8")
        assert client.get("/api/license").status_code == 500


class TestAutomation:
    def test_defaults(self, client) -> None:
        data = client.get("/api/automation").json()
        assert data["settings"] == {"enabled": False, "schedule": "weekly", "auto_fix_enabled": False}
        assert data["scheduler"]["running"] is True

    def test_update(self, client) -> None:
        r = client.put("/api/automation", json={"enabled": True, "schedule": "Daily", "auto_fix_enabled": True})
        assert r.status_code == 200
        assert r.json()["settings"]["schedule"] == "daily"
        assert client.get("/api/automation").json()["settings"]["enabled"] is True

    def test_invalid_schedule(self, client) -> None:
        r = client.put("/api/automation", json={"enabled": True, "schedule": "hourly"})
        assert r.status_code == 422


class TestChangelog:
    def test_entries(self, client) -> None:
        assert client.get("/api/changelog").json() == {"entries": []}
        client.app.state.store.record_change("fixed", "enable_firewall", "Firewall enabled")
        entries = client.get("/api/changelog?limit=5").json()["entries"]
        assert entries[0]["action"] == "FIXED"
