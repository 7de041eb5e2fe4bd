"""Tests for the built-in checkers (system calls mocked)."""

from __future__ import annotations

import os
import time
from collections import namedtuple
from unittest.mock import MagicMock, patch

import httpx
import pytest

from healthspeed.checkers import build_default_engine
from healthspeed.checkers.bottleneck import BottleneckAnalyzer
from healthspeed.checkers.firewall import FirewallChecker, parse_firewall_state
from healthspeed.checkers.network import NetworkChecker
from healthspeed.checkers.os_update import OsUpdateChecker, parse_pending_updates
from healthspeed.checkers.ports import PortScanner, listening_ports
from healthspeed.checkers.smart_disk import DiskHealth, SmartDiskChecker, parse_smart_status
from healthspeed.checkers.startup import StartupAnalyzer
from healthspeed.checkers.storage import StorageChecker, stale_files
from healthspeed.engine.command import CommandError, CommandOutput
from healthspeed.engine.models import CheckCategory, FixStatus, ScanContext, ScanOptions, Severity

GB = 1024 ** 3


def ctx(**options) -> ScanContext:
    return ScanContext(scan_id="test", options=ScanOptions(**options))


def output(stdout: str = "", returncode: int = 0, stderr: str = "") -> CommandOutput:
    return CommandOutput(returncode=returncode, stdout=stdout, stderr=stderr, duration_ms=1)


# ── Firewall ─────────────────────────────────────────────────────────────────


class TestFirewall:
    @pytest.mark.parametrize("platform,text,expected", [
        ("linux", "Status: active\n", True),
        ("linux", "Status: inactive\n", False),
        ("linux", "ERROR: need root", None),
        ("darwin", "Firewall is enabled. (State = 1)", True),
        ("darwin", "Firewall is disabled. (State = 0)", False),
        ("win32", "Domain Profile Settings:\nState  ON\nPrivate Profile Settings:\nState  ON", True),
        ("win32", "Domain Profile Settings:\nState  ON\nPublic Profile Settings:\nState  OFF", False),
        ("win32", "access is denied", None),
    ])
    def test_parse_state(self, platform, text, expected) -> None:
        assert parse_firewall_state(platform, text) is expected

    @patch("healthspeed.checkers.firewall.run_with_timeout")
    def test_disabled_reports_critical(self, mock_run) -> None:
        mock_run.return_value = output("Status: inactive")
        issues = FirewallChecker(platform="linux").run(ctx())
        assert [i.id for i in issues] == ["firewall_disabled"]
        assert issues[0].severity is Severity.CRITICAL
        assert issues[0].fix.auto_fixable

    @patch("healthspeed.checkers.firewall.run_with_timeout")
    def test_enabled_or_unknown_reports_nothing(self, mock_run) -> None:
        checker = FirewallChecker(platform="linux")
        mock_run.return_value = output("Status: active")
        assert checker.run(ctx()) == []
        mock_run.side_effect = CommandError("no ufw")
        assert checker.run(ctx()) == []

    def test_unsupported_platform(self) -> None:
        checker = FirewallChecker(platform="plan9")
        assert checker.run(ctx()) == []
        assert checker.fix("enable_firewall", {}).status is FixStatus.FAILED

    @patch("healthspeed.checkers.firewall.run_with_timeout")
    def test_fix(self, mock_run) -> None:
        checker = FirewallChecker(timeout=7, platform="linux")
        mock_run.return_value = output("Firewall is active")
        outcome = checker.fix("enable_firewall", {})
        assert outcome.status is FixStatus.SUCCEEDED
        mock_run.assert_called_once_with(["ufw", "--force", "enable"], 7)

    @patch("healthspeed.checkers.firewall.run_with_timeout")
    def test_fix_failure_and_timeout(self, mock_run) -> None:
        checker = FirewallChecker(platform="linux")
        mock_run.return_value = output(returncode=1, stderr="need root")
        outcome = checker.fix("enable_firewall", {})
        assert outcome.status is FixStatus.FAILED
        assert "need root" in outcome.reason

        mock_run.side_effect = CommandError("ufw timed out after 60s")
        assert checker.fix("enable_firewall", {}).status is FixStatus.FAILED

    def test_not_my_action(self) -> None:
        assert FirewallChecker(platform="linux").fix("fix_dns", {}).status is FixStatus.NOT_APPLICABLE


# ── OS updates ───────────────────────────────────────────────────────────────

APT_TWO_PENDING = """\
Reading package lists...
Building dependency tree...
Calculating upgrade...
The following packages will be upgraded:
  curl libcurl4
2 upgraded, 0 newly installed, 0 to remove and 0 not upgraded.
Inst curl [7.81.0-1ubuntu1.14] (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
Inst libcurl4 [7.81.0-1ubuntu1.14] (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
Conf curl (7.81.0-1ubuntu1.15 Ubuntu:22.04/jammy-updates [amd64])
"""


class TestOsUpdates:
    @pytest.mark.parametrize("platform,text,expected", [
        ("win32", "7\r\n", 7),
        ("win32", "0", 0),
        ("win32", "Exception from HRESULT: 0x8024402C", None),
        ("darwin", "Software Update Tool\n\nNo new software available.\n", 0),
        ("darwin", "Software Update found the following new or updated software:\n"
                   "* Label: macOS Sonoma 14.1\n\tTitle: macOS Sonoma\n* Label: Safari17.1\n", 2),
        ("darwin", "softwareupdate: network unavailable", None),
        ("linux", APT_TWO_PENDING, 2),
        ("linux", "Reading package lists...\n0 upgraded, 0 newly installed.\n", 0),
        ("linux", "E: Could not open lock file /var/lib/dpkg/lock-frontend", None),
    ])
    def test_parse_pending(self, platform, text, expected) -> None:
        assert parse_pending_updates(platform, text) == expected

    @patch("healthspeed.checkers.os_update.run_with_timeout")
    def test_windows_reports_weighted_issue(self, mock_run) -> None:
        mock_run.return_value = output("3")
        issues = OsUpdateChecker(platform="win32").run(ctx())
        assert [i.id for i in issues] == ["windows_update_pending"]
        assert issues[0].severity is Severity.WARNING
        assert issues[0].fix.action_id == "install_updates"
        assert not issues[0].fix.auto_fixable
        assert issues[0].fix.params == {"count": 3}

    @patch("healthspeed.checkers.os_update.run_with_timeout")
    def test_many_pending_is_critical(self, mock_run) -> None:
        mock_run.return_value = output("6")
        issues = OsUpdateChecker(platform="win32").run(ctx())
        assert issues[0].severity is Severity.CRITICAL

    @patch("healthspeed.checkers.os_update.run_with_timeout")
    def test_linux_issue_id(self, mock_run) -> None:
        mock_run.return_value = output(APT_TWO_PENDING)
        issues = OsUpdateChecker(timeout=9, platform="linux").run(ctx())
        assert [i.id for i in issues] == ["os_update_pending"]
        mock_run.assert_called_once_with(["apt-get", "--simulate", "upgrade"], 9)

    @patch("healthspeed.checkers.os_update.run_with_timeout")
    def test_up_to_date_or_unknown_reports_nothing(self, mock_run) -> None:
        checker = OsUpdateChecker(platform="win32")
        mock_run.return_value = output("0")
        assert checker.run(ctx()) == []
        mock_run.side_effect = CommandError("powershell not found")
        assert checker.run(ctx()) == []

    @patch("healthspeed.checkers.os_update.run_with_timeout")
    def test_quick_scan_skips(self, mock_run) -> None:
        assert OsUpdateChecker(platform="win32").run(ctx(quick=True)) == []
        mock_run.assert_not_called()

    def test_install_is_manual(self) -> None:
        checker = OsUpdateChecker(platform="win32")
        outcome = checker.fix("install_updates", {"count": 3})
        assert outcome.status is FixStatus.FAILED
        assert "Windows Update" in outcome.reason
        assert checker.fix("enable_firewall", {}).status is FixStatus.NOT_APPLICABLE


# ── S.M.A.R.T. ───────────────────────────────────────────────────────────────


class TestSmartDisk:
    @pytest.mark.parametrize("platform,text,expected", [
        ("linux", "SMART overall-health self-assessment test result: PASSED\n", DiskHealth.OK),
        ("linux", "SMART overall-health self-assessment test result: FAILED!\n"
                  "Drive failure expected in less than 24 hours.\n", DiskHealth.FAILING),
        ("linux", "5 Reallocated_Sector_Ct 0x0033 001 001 005 Pre-fail Always FAILING_NOW 4000", DiskHealth.FAILING),
        ("linux", "SMART Health Status: OK\n", DiskHealth.OK),
        ("linux", "smartctl: Permission denied", None),
        ("darwin", "   SMART Status:              Verified\n", DiskHealth.OK),
        ("darwin", "   SMART Status:              Not Supported\n", None),
        ("darwin", "   S.M.A.R.T. Status: Verified\n", DiskHealth.OK),
        ("darwin", "   S.M.A.R.T. Status: Failing\n", DiskHealth.FAILING),
        ("win32", "Node,Model,Status\r\nPC,Samsung SSD,OK\r\nPC,WDC HDD,Degraded\r\n", DiskHealth.DEGRADED),
        ("win32", "Node,Model,Status\r\nPC,Samsung SSD,OK\r\nPC,WDC HDD,Pred Fail\r\n", DiskHealth.FAILING),
        ("win32", "Node,Model,Status\r\nPC,Samsung SSD,OK\r\n", DiskHealth.OK),
        ("win32", "", None),
    ])
    def test_parse_status(self, platform, text, expected) -> None:
        assert parse_smart_status(platform, text) is expected

    @patch("healthspeed.checkers.smart_disk.run_with_timeout")
    @patch("healthspeed.checkers.smart_disk.physical_devices", return_value=["/dev/sda", "/dev/sdb"])
    def test_failing_drive_is_critical(self, _, mock_run) -> None:
        mock_run.side_effect = [
            output("test result: PASSED"),
            output("test result: FAILED!"),
        ]
        issues = SmartDiskChecker(timeout=5, platform="linux").run(ctx())
        assert [i.id for i in issues] == ["disk_smart_failure"]
        assert issues[0].severity is Severity.CRITICAL
        assert issues[0].fix is None
        assert mock_run.call_args_list[1].args == (["smartctl", "-H", "/dev/sdb"], 5)

    @patch("healthspeed.checkers.smart_disk.run_with_timeout")
    def test_degraded_drive_is_warning(self, mock_run) -> None:
        mock_run.return_value = output("Node,Model,Status\nPC,HDD,Degraded\n")
        issues = SmartDiskChecker(platform="win32").run(ctx())
        assert [i.id for i in issues] == ["disk_smart_degraded"]
        assert issues[0].severity is Severity.WARNING

    @patch("healthspeed.checkers.smart_disk.run_with_timeout")
    @patch("healthspeed.checkers.smart_disk.physical_devices", return_value=["/dev/sda", "/dev/sdb"])
    def test_unreadable_drive_is_skipped(self, _, mock_run) -> None:
        mock_run.side_effect = [CommandError("smartctl not found"), output("test result: PASSED")]
        assert SmartDiskChecker(platform="linux").run(ctx()) == []
        assert mock_run.call_count == 2

    def test_unsupported_platform_and_no_fixes(self) -> None:
        checker = SmartDiskChecker(platform="plan9")
        assert checker.run(ctx()) == []
        assert checker.fix("disk_smart_failure", {}).status is FixStatus.NOT_APPLICABLE


# ── Ports ────────────────────────────────────────────────────────────────────

Addr = namedtuple("Addr", "ip port")
Conn = namedtuple("Conn", "laddr status")


class TestPorts:
    @patch("healthspeed.checkers.ports.psutil.net_connections")
    def test_listening_ports_skips_loopback(self, mock_conns) -> None:
        mock_conns.return_value = [
            Conn(Addr("0.0.0.0", 22), "LISTEN"),
            Conn(Addr("127.0.0.1", 5900), "LISTEN"),
            Conn(Addr("0.0.0.0", 445), "ESTABLISHED"),
            Conn((), "LISTEN"),
        ]
        assert listening_ports() == {22}

    @patch("healthspeed.checkers.ports.listening_ports", return_value={8080, 3389, 21})
    def test_reports_risky_ports(self, _) -> None:
        issues = PortScanner().run(ctx())
        assert [i.id for i in issues] == ["port_open_21", "port_open_3389"]
        assert issues[1].severity is Severity.CRITICAL
        assert issues[0].fix.params == {"port": 21, "service": "FTP"}

    @patch("healthspeed.checkers.ports.listening_ports")
    def test_quick_scan_skips(self, mock_ports) -> None:
        assert PortScanner().run(ctx(quick=True)) == []
        mock_ports.assert_not_called()

    def test_fix_is_manual(self) -> None:
        scanner = PortScanner()
        outcome = scanner.fix("close_port_3389", {})
        assert outcome.status is FixStatus.FAILED
        assert "3389" in outcome.reason
        assert scanner.fix("enable_firewall", {}).status is FixStatus.NOT_APPLICABLE


# ── Startup ──────────────────────────────────────────────────────────────────


class TestStartup:
    def _populate(self, directory, count, hidden=()) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        for n in range(count):
            name = f"app{n}"
            extra = "Hidden=true\n" if name in hidden else ""
            (directory / f"{name}.desktop").write_text(f"[Desktop Entry]\nName={name}\n{extra}")

    def test_few_items_no_issue(self, tmp_path) -> None:
        self._populate(tmp_path / ".config" / "autostart", 3)
        assert StartupAnalyzer(home=tmp_path, system_dirs=[]).run(ctx()) == []

    def test_excessive_items(self, tmp_path) -> None:
        system = tmp_path / "etc"
        self._populate(system, 20, hidden={"app0", "app1"})
        analyzer = StartupAnalyzer(home=tmp_path, system_dirs=[system])
        assert len(analyzer.startup_items()) == 18
        issues = analyzer.run(ctx())
        assert [i.id for i in issues] == ["excessive_startup_items"]
        assert issues[0].fix.params["count"] == 18

    def test_exclude_startup(self, tmp_path) -> None:
        self._populate(tmp_path / ".config" / "autostart", 20)
        assert StartupAnalyzer(home=tmp_path, system_dirs=[]).run(ctx(exclude_startup=True)) == []

    def test_disable_writes_user_override(self, tmp_path) -> None:
        system = tmp_path / "etc"
        self._populate(system, 2)
        analyzer = StartupAnalyzer(home=tmp_path, system_dirs=[system])

        outcome = analyzer.fix("disable_startup_app1", {})
        assert outcome.status is FixStatus.SUCCEEDED
        assert outcome.result.rollback_available
        override = tmp_path / ".config" / "autostart" / "app1.desktop"
        assert "Hidden=true" in override.read_text()
        assert [i.name for i in analyzer.startup_items()] == ["app0"]

    def test_disable_unknown(self, tmp_path) -> None:
        analyzer = StartupAnalyzer(home=tmp_path, system_dirs=[])
        assert analyzer.fix("disable_startup_ghost", {}).status is FixStatus.FAILED
        assert analyzer.fix("optimize_startup", {}).status is FixStatus.FAILED


# ── Storage ──────────────────────────────────────────────────────────────────

Usage = namedtuple("Usage", "total used free percent")


class TestStorage:
    @pytest.mark.parametrize("percent,severity", [
        (84.9, None),
        (85.0, Severity.WARNING),
        (96.0, Severity.CRITICAL),
    ])
    @patch("healthspeed.checkers.storage.psutil.disk_usage")
    def test_low_space(self, mock_usage, percent, severity, tmp_path) -> None:
        mock_usage.return_value = Usage(100 * GB, percent * GB, (100 - percent) * GB, percent)
        issues = StorageChecker(mountpoints=["/"], temp_dir=tmp_path).run(ctx())
        if severity is None:
            assert issues == []
        else:
            assert [i.id for i in issues] == ["storage_low_space_root"]
            assert issues[0].severity is severity
            assert issues[0].fix.action_id == "free_space_root"

    def test_stale_files(self, tmp_path) -> None:
        old = tmp_path / "old.log"
        new = tmp_path / "sub" / "new.log"
        new.parent.mkdir()
        old.write_text("x" * 10)
        new.write_text("y")
        past = time.time() - 10 * 86_400
        os.utime(old, (past, past))
        assert stale_files(tmp_path, 7) == [(old, 10)]

    @patch("healthspeed.checkers.storage.TEMP_CLEANUP_THRESHOLD_BYTES", 5)
    @patch("healthspeed.checkers.storage.psutil.disk_usage")
    def test_temp_cleanup_issue_and_fix(self, mock_usage, tmp_path) -> None:
        mock_usage.return_value = Usage(100 * GB, 10 * GB, 90 * GB, 10.0)
        old = tmp_path / "old.tmp"
        old.write_text("x" * 10)
        past = time.time() - 30 * 86_400
        os.utime(old, (past, past))

        checker = StorageChecker(mountpoints=["/"], temp_dir=tmp_path)
        assert [i.id for i in checker.run(ctx())] == ["storage_temp_cleanup"]
        assert checker.run(ctx(quick=True)) == []

        outcome = checker.fix("clean_temp_files", {"max_age_days": 7})
        assert outcome.status is FixStatus.SUCCEEDED
        assert "Removed 1 files" in outcome.result.message
        assert not old.exists()

    def test_free_space_is_manual(self, tmp_path) -> None:
        checker = StorageChecker(mountpoints=["/"], temp_dir=tmp_path)
        assert checker.fix("free_space_root", {}).status is FixStatus.FAILED
        assert checker.fix("close_port_22", {}).status is FixStatus.NOT_APPLICABLE


# ── Bottleneck ───────────────────────────────────────────────────────────────

Mem = namedtuple("Mem", "total percent")


class TestBottleneck:
    @patch("healthspeed.checkers.bottleneck.psutil.virtual_memory")
    def test_plenty_of_ram(self, mock_mem) -> None:
        mock_mem.return_value = Mem(16 * GB, 40.0)
        assert BottleneckAnalyzer().run(ctx()) == []

    @patch("healthspeed.checkers.bottleneck.psutil.virtual_memory")
    def test_low_and_exhausted(self, mock_mem) -> None:
        mock_mem.return_value = Mem(3 * GB, 95.0)
        issues = BottleneckAnalyzer().run(ctx())
        assert [i.id for i in issues] == ["bottleneck_low_ram", "bottleneck_ram_exhaustion"]
        assert issues[0].severity is Severity.WARNING

    @patch("healthspeed.checkers.bottleneck.psutil.virtual_memory")
    def test_six_gb_is_info(self, mock_mem) -> None:
        mock_mem.return_value = Mem(6 * GB, 50.0)
        assert BottleneckAnalyzer().run(ctx())[0].severity is Severity.INFO

    @patch("healthspeed.checkers.bottleneck.psutil.process_iter")
    def test_analyze_ram_hogs(self, mock_iter) -> None:
        procs = []
        for name, rss in [("small", 1), ("big", 100), ("none", None)]:
            p = MagicMock()
            p.info = {"name": name, "memory_info": MagicMock(rss=rss) if rss else None}
            procs.append(p)
        mock_iter.return_value = procs
        outcome = BottleneckAnalyzer().fix("analyze_ram_hogs", {})
        assert outcome.status is FixStatus.SUCCEEDED
        assert outcome.result.message.startswith("Largest memory users: big, small")


# ── Network ──────────────────────────────────────────────────────────────────


class TestNetwork:
    def _checker(self, latency, dns) -> NetworkChecker:
        checker = NetworkChecker()
        checker.measure_latency = MagicMock(return_value=latency)
        checker.measure_dns = MagicMock(return_value=dns)
        return checker

    def test_healthy(self) -> None:
        assert self._checker(20.0, 10.0).run(ctx()) == []

    def test_no_connection(self) -> None:
        issues = self._checker(None, 10.0).run(ctx())
        assert [i.id for i in issues] == ["network_no_connection"]

    @pytest.mark.parametrize("latency,severity", [(200.0, Severity.WARNING), (400.0, Severity.CRITICAL)])
    def test_high_latency(self, latency, severity) -> None:
        issues = self._checker(latency, 10.0).run(ctx())
        assert issues[0].id == "network_high_latency"
        assert issues[0].severity is severity

    def test_dns_problems(self) -> None:
        assert [i.id for i in self._checker(20.0, None).run(ctx())] == ["network_dns_failure"]
        assert [i.id for i in self._checker(20.0, 250.0).run(ctx())] == ["network_slow_dns"]

    def test_quick_skips_latency(self) -> None:
        checker = self._checker(None, 10.0)
        assert checker.run(ctx(quick=True)) == []
        checker.measure_latency.assert_not_called()

    @patch("healthspeed.checkers.network.httpx.Client")
    def test_measure_latency_http_error(self, mock_client_cls) -> None:
        client = mock_client_cls.return_value.__enter__.return_value
        client.head.side_effect = httpx.ConnectError("unreachable")
        assert NetworkChecker().measure_latency() is None

    @patch("healthspeed.checkers.network.httpx.Client")
    def test_measure_latency_ok(self, mock_client_cls) -> None:
        latency = NetworkChecker(probe_url="https://probe.test").measure_latency()
        assert latency is not None and latency >= 0
        mock_client_cls.return_value.__enter__.return_value.head.assert_called_once_with("https://probe.test")

    @patch("healthspeed.checkers.network.socket.getaddrinfo", side_effect=OSError("no dns"))
    def test_measure_dns_failure(self, _) -> None:
        assert NetworkChecker().measure_dns() is None

    def test_fix_dns_is_manual(self) -> None:
        outcome = NetworkChecker().fix("fix_dns", {})
        assert outcome.status is FixStatus.FAILED
        assert "1.1.1.1" in outcome.reason


# ── Default wiring ───────────────────────────────────────────────────────────


class TestDefaultEngine:
    def test_registers_all_checkers(self, test_settings) -> None:
        engine = build_default_engine(test_settings)
        assert [c.name() for c in engine.checkers] == [
            "firewall_checker", "os_update_checker", "startup_analyzer", "port_scanner",
            "network_checker", "storage_checker", "smart_disk_checker", "bottleneck_analyzer",
        ]
        categories = {c.category() for c in engine.checkers}
        assert categories == {CheckCategory.SECURITY, CheckCategory.PERFORMANCE}
