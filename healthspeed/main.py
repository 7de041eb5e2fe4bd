"""Command-line entry point for the Health & Speed Checker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .automation.scheduler import AutomationScheduler
from .checkers import build_default_engine
from .config import Settings, settings
from .engine.models import AutomationSettings, ScanOptions, ScanResult, Severity
from .engine.store import ScanStore, StoreError
from .license.manager import InvalidLicenseKeyError, LicenseError, LicenseManager

console = Console()
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CRITICAL_FOUND = 2

_SEVERITY_STYLE = {
    Severity.CRITICAL: "bold red",
    Severity.WARNING: "bold yellow",
    Severity.INFO: "blue",
}


def _score_style(score: int) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


def _delta(delta: int | None) -> str:
    if delta is None:
        return ""
    if delta > 0:
        return f" [green]↑{delta}[/green]"
    if delta < 0:
        return f" [red]↓{-delta}[/red]"
    return " →0"


def _fmt_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def print_result(result: ScanResult) -> None:
    """Human-readable scan report."""
    h, s = result.scores.health, result.scores.speed
    console.print(Panel(
        f"Health Score: [{_score_style(h)}]{h}/100[/]{_delta(result.scores.health_delta)}\n"
        f"Speed Score:  [{_score_style(s)}]{s}/100[/]{_delta(result.scores.speed_delta)}",
        title="Health & Speed Check Results",
        style="bold blue",
    ))

    if not result.issues:
        console.print("[bold green]✓ No issues found! Your system is healthy.[/bold green]")
    else:
        console.print("[bold yellow]TOP ISSUES FOUND:[/bold yellow]\n")
        for n, issue in enumerate(result.issues[:5], start=1):
            badge = f"[{_SEVERITY_STYLE[issue.severity]}][{issue.severity.value.upper()}][/]"
            console.print(f"  {n}. {badge} [bold]{issue.title}[/bold]")
            console.print(f"     {issue.description}")
            if issue.fix:
                if issue.fix.auto_fixable:
                    console.print(f"     [green]→[/green] Run: healthspeed fix {issue.fix.action_id}")
                else:
                    console.print(f"     [yellow]→[/yellow] {issue.fix.label} (manual)")
            console.print()
        if len(result.issues) > 5:
            console.print(f"  ... and {len(result.issues) - 5} more issues\n")

    counts = result.count_by_severity()
    console.print(
        f"[dim]Scan completed in {result.duration_ms} ms | "
        f"Critical: {counts['critical']} | Warnings: {counts['warning']} | Info: {counts['info']}[/dim]"
    )
    failed = result.details.get("checkers_failed") or []
    if failed:
        console.print(f"[dim]Checkers that failed: {', '.join(failed)}[/dim]")


# ── Commands ─────────────────────────────────────────────────────────────────


def cmd_scan(args: argparse.Namespace, cfg: Settings) -> int:
    options = ScanOptions(
        security=not args.performance_only,
        performance=not args.security_only,
        quick=args.quick,
        exclude_apps=args.quick,
        exclude_startup=args.quick,
    )
    engine = build_default_engine(cfg)

    if args.output == "human":
        with console.status("[bold green]Scanning..."):
            result = engine.scan(options)
    else:
        result = engine.scan(options)

    if not args.no_save:
        store = ScanStore(cfg.db_path)
        try:
            store.save_with_deltas(result, "quick" if args.quick else "full")
        finally:
            store.close()

    if args.output == "json":
        text = json.dumps(result.to_dict(), indent=2)
        if args.file:
            with open(args.file, "w", encoding="utf-8") as f:
                f.write(text)
        else:
            print(text)
    else:
        print_result(result)

    # Warnings alone don't fail automated runs; critical findings do
    if result.worst_severity() is Severity.CRITICAL:
        return EXIT_CRITICAL_FOUND
    return EXIT_OK


def cmd_fix(args: argparse.Namespace, cfg: Settings) -> int:
    try:
        params = json.loads(args.params) if args.params else {}
    except ValueError as e:
        console.print(f"[red]Invalid --params JSON: {e}[/red]")
        return EXIT_ERROR

    if not args.yes:
        answer = console.input(f"Are you sure you want to run '{args.action_id}'? [y/N] ")
        if answer.strip().lower() != "y":
            console.print("Fix cancelled.")
            return EXIT_OK

    result = build_default_engine(cfg).fix_issue(args.action_id, params)
    if result.success:
        console.print(f"[green]✓[/green] {result.message}")
        return EXIT_OK
    console.print(f"[red]✗[/red] {result.message}")
    return EXIT_ERROR


def cmd_status(args: argparse.Namespace, cfg: Settings) -> int:
    store = ScanStore(cfg.db_path)
    try:
        last = store.latest_scan()
    finally:
        store.close()

    if last is None:
        console.print("No scans yet. Run: healthspeed scan")
        return EXIT_OK

    if args.json:
        print(json.dumps({
            "health": last.scores.health,
            "speed": last.scores.speed,
            "last_scan": last.timestamp,
            "issues": len(last.issues),
        }))
    else:
        counts = last.count_by_severity()
        console.print(
            f"Health: {last.scores.health}/100 ({counts['critical']} critical), "
            f"Speed: {last.scores.speed}/100 ({len(last.issues)} issues), "
            f"Last scan: {_fmt_ts(last.timestamp)}"
        )
    return EXIT_OK


def cmd_report(args: argparse.Namespace, cfg: Settings) -> int:
    store = ScanStore(cfg.db_path)
    try:
        if args.report_command == "show":
            scan = store.get_scan(args.scan_id)
            if scan is None:
                console.print(f"[red]Scan not found: {args.scan_id}[/red]")
                return EXIT_ERROR
            print_result(scan)
            return EXIT_OK

        table = Table(title="Recent scans")
        for col in ("Scan ID", "When", "Type", "Health", "Speed", "Duration"):
            table.add_column(col)
        for s in store.recent_scans(args.limit):
            table.add_row(
                s.scan_id, _fmt_ts(s.timestamp), s.scan_type,
                str(s.health), str(s.speed), f"{s.duration_ms} ms",
            )
        console.print(table)
        return EXIT_OK
    finally:
        store.close()


def cmd_license(args: argparse.Namespace, cfg: Settings) -> int:
    manager = LicenseManager(cfg.license_path)
    try:
        if args.license_command == "activate":
            lic = manager.activate_pro(args.key)
            console.print("[green]✓ Pro license activated[/green]")
        elif args.license_command == "trial":
            lic = manager.start_trial()
            console.print(f"[green]✓ Trial active: {lic.trial_days_remaining()} days remaining[/green]")
        elif args.license_command == "downgrade":
            lic = manager.downgrade_to_free()
            console.print("License reset to Free")
        else:
            lic = manager.load()
    except InvalidLicenseKeyError as e:
        console.print(f"[red]{e}[/red]")
        return EXIT_ERROR
    except LicenseError as e:
        console.print(f"[red]License error: {e}[/red]")
        return EXIT_ERROR

    console.print(f"Tier: {lic.effective_tier().value}")
    if lic.expires_at is not None:
        console.print(f"Expires: {_fmt_ts(lic.expires_at)}")
    return EXIT_OK


def cmd_automation(args: argparse.Namespace, cfg: Settings) -> int:
    store = ScanStore(cfg.db_path)
    try:
        current = store.get_automation_settings()
        if args.automation_command == "set":
            current = store.set_automation_settings(AutomationSettings(
                enabled=current.enabled if args.enabled is None else args.enabled,
                schedule=args.schedule or current.schedule,
                auto_fix_enabled=current.auto_fix_enabled if args.auto_fix is None else args.auto_fix,
            ))
    finally:
        store.close()

    console.print(
        f"Automation: {'enabled' if current.enabled else 'disabled'} | "
        f"Schedule: {current.schedule} | "
        f"Auto-fix: {'on' if current.auto_fix_enabled else 'off'}"
    )
    return EXIT_OK


def cmd_changelog(args: argparse.Namespace, cfg: Settings) -> int:
    store = ScanStore(cfg.db_path)
    try:
        entries = store.get_changelog_entries(args.limit)
    finally:
        store.close()

    table = Table(title="Changelog")
    for col in ("When", "Action", "Target", "Reason"):
        table.add_column(col)
    for e in entries:
        table.add_row(_fmt_ts(e.timestamp), e.action, e.path, e.reason)
    console.print(table)
    return EXIT_OK


def cmd_daemon(args: argparse.Namespace, cfg: Settings) -> int:
    store = ScanStore(cfg.db_path)
    scheduler = AutomationScheduler(
        store=store,
        license_manager=LicenseManager(cfg.license_path),
        engine_factory=lambda: build_default_engine(cfg),
        interval=cfg.automation_interval_seconds,
    )
    console.print(Panel("Automation daemon running (Ctrl+C to stop)", style="bold green"))
    try:
        asyncio.run(scheduler.serve())
    except KeyboardInterrupt:
        pass
    finally:
        store.close()
    return EXIT_OK


def cmd_serve(args: argparse.Namespace, cfg: Settings) -> int:
    from .api.server import create_app

    console.print(Panel("Starting local API server", style="bold green"))
    uvicorn.run(create_app(cfg), host=cfg.api_host, port=cfg.api_port, reload=False)
    return EXIT_OK


# ── Parser ───────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="healthspeed", description="Privacy-first PC health and speed checker")
    sub = parser.add_subparsers(dest="command")

    scan = sub.add_parser("scan", help="Run a system scan")
    only = scan.add_mutually_exclusive_group()
    only.add_argument("--security-only", action="store_true", help="Only scan security issues")
    only.add_argument("--performance-only", action="store_true", help="Only scan performance issues")
    scan.add_argument("--quick", action="store_true", help="Skip slow and detailed checks")
    scan.add_argument("--output", choices=("human", "json"), default="human")
    scan.add_argument("--file", help="Write JSON output to a file")
    scan.add_argument("--no-save", action="store_true", help="Don't store the result in scan history")

    fix = sub.add_parser("fix", help="Run a fix action")
    fix.add_argument("action_id")
    fix.add_argument("--params", help="JSON object of fix parameters")
    fix.add_argument("--yes", action="store_true", help="Don't ask for confirmation")

    status = sub.add_parser("status", help="Show scores of the last scan")
    status.add_argument("--json", action="store_true")

    report = sub.add_parser("report", help="Scan history")
    report_sub = report.add_subparsers(dest="report_command", required=True)
    report_list = report_sub.add_parser("list", help="List recent scans")
    report_list.add_argument("limit", nargs="?", type=int, default=10)
    report_show = report_sub.add_parser("show", help="Show one scan")
    report_show.add_argument("scan_id")

    lic = sub.add_parser("license", help="License management")
    lic_sub = lic.add_subparsers(dest="license_command", required=True)
    lic_sub.add_parser("status")
    activate = lic_sub.add_parser("activate")
    activate.add_argument("key")
    lic_sub.add_parser("trial")
    lic_sub.add_parser("downgrade")

    auto = sub.add_parser("automation", help="Scheduled scan settings")
    auto_sub = auto.add_subparsers(dest="automation_command", required=True)
    auto_sub.add_parser("show")
    auto_set = auto_sub.add_parser("set")
    auto_set.add_argument("--enabled", dest="enabled", action="store_true", default=None)
    auto_set.add_argument("--disabled", dest="enabled", action="store_false")
    auto_set.add_argument("--schedule", help="daily | weekly | monthly")
    auto_set.add_argument("--auto-fix", dest="auto_fix", action="store_true", default=None)
    auto_set.add_argument("--no-auto-fix", dest="auto_fix", action="store_false")

    changelog = sub.add_parser("changelog", help="Show recent changes made by fixes")
    changelog.add_argument("limit", nargs="?", type=int, default=50)

    sub.add_parser("daemon", help="Run the automation scheduler in the foreground")
    sub.add_parser("serve", help="Start the local API server")
    return parser


COMMANDS = {
    "scan": cmd_scan,
    "fix": cmd_fix,
    "status": cmd_status,
    "report": cmd_report,
    "license": cmd_license,
    "automation": cmd_automation,
    "changelog": cmd_changelog,
    "daemon": cmd_daemon,
    "serve": cmd_serve,
}


def main(argv: list[str] | None = None, cfg: Settings | None = None) -> int:
    cfg = cfg or settings
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)
    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return EXIT_ERROR

    try:
        return handler(args, cfg)
    except StoreError as e:
        console.print(f"[red]Storage error: {e}[/red]")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
