#!/usr/bin/env python3
"""chainwatch - CLI Entry Point."""
import sys
import json
import signal
import threading
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()

STATUS_STYLES = {"healthy": "green", "degraded": "yellow", "down": "red"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from config.settings import MonitorSettings
    from alerts.alert_log import AlertLog
    from alerts.channels import build_dispatcher
    from alerts.cooldown import CooldownTracker
    from alerts.engine import AlertEngine
    from alerts.rules_store import RuleStore
    from monitor.history import HistoryStore
    from monitor.loop import MonitoringLoop
    from monitor.probes import build_probes
    from monitor.report import ReportBuilder
    from monitor.sampler import ProbeSampler
    from monitor.sources import build_sources
    from monitor.trends import TrendAnalyzer

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))
    settings = MonitorSettings.from_config(config)

    rule_store = RuleStore(settings.alerts.config_path)
    rule_store.load()
    alert_log = AlertLog(settings.alerts_dir)

    engine = AlertEngine(
        rule_store,
        build_dispatcher(settings, config, console),
        build_sources(settings),
        alert_log=alert_log,
        cooldowns=CooldownTracker(),
        tail_lines=settings.alerts.log_tail_lines,
        max_workers=settings.alerts.max_workers,
    )
    history = HistoryStore(settings.history_path)
    report_builder = ReportBuilder(
        history, alert_log, TrendAnalyzer(settings.trends), settings.reports_dir,
    )
    sampler = ProbeSampler(build_probes(settings))
    loop = MonitoringLoop(settings, sampler, engine, history, report_builder)

    return {
        "config": config, "settings": settings, "rules": rule_store,
        "alert_log": alert_log, "alert_engine": engine, "history": history,
        "report_builder": report_builder, "sampler": sampler, "loop": loop,
    }


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="chainwatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """chainwatch - Continuous testnet health monitoring and alerting."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        try:
            ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
        except (OSError, ValueError) as e:
            raise click.ClickException(f"Startup failed: {e}")
    return ctx.obj["_components"]


def _start_loop(loop):
    from monitor.loop import StartupError
    try:
        loop.start()
    except StartupError as e:
        raise click.ClickException(str(e))


# ──────────────────────────────────────────────────────
# MONITOR
# ──────────────────────────────────────────────────────
@cli.group()
def monitor():
    """Health sampling, history and reports."""
    pass


@monitor.command("run")
@click.option("--interval", default=None, type=float, help="Seconds between ticks (default: config)")
@click.pass_context
def monitor_run(ctx, interval):
    """Monitor continuously until interrupted."""
    from monitor.scheduler import MonitorScheduler

    c = _get_components(ctx)
    loop = c["loop"]
    settings = c["settings"]
    _start_loop(loop)

    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        console.print("\n[yellow]Stop requested, finishing current tick...[/yellow]")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    every = interval or settings.interval_seconds
    console.print(f"[bold]chainwatch[/bold] monitoring [cyan]{settings.network}[/cyan] every {every:g}s")
    console.print(f"[dim]Program: {settings.program_id}  RPC: {settings.rpc_url}[/dim]")
    console.print("[yellow]Press Ctrl+C to stop monitoring[/yellow]\n")

    MonitorScheduler(loop, every, stop_event).run()
    loop.stop()
    console.print("[green]✓[/green] Monitoring stopped gracefully")


@monitor.command("check")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def monitor_check(ctx, as_json):
    """Run a single monitoring tick."""
    c = _get_components(ctx)
    loop = c["loop"]
    _start_loop(loop)
    result = loop.tick()
    if result is None:
        raise click.ClickException("Monitoring tick failed, see log output")

    record = result.record
    if as_json:
        click.echo(json.dumps({
            "record": record.to_dict(),
            "alerts": [a.to_dict() for a in result.alerts],
        }, indent=2))
        return

    style = STATUS_STYLES.get(record.status.value, "")
    table = Table(title="Health Check", show_header=True)
    table.add_column("Operation")
    table.add_column("Result")
    for name, ok in record.operations.items():
        table.add_row(name, "[green]✓[/green]" if ok else "[red]✗[/red]")
    console.print(table)
    console.print(
        f"Status: [{style}]{record.status.value.upper()}[/{style}] | "
        f"Latency: {record.latency_ms:.0f}ms | Error Rate: {record.error_rate_pct:.1f}%"
    )
    console.print(c["alert_engine"].format_alert_summary(result.alerts), markup=False)


@monitor.command("status")
@click.pass_context
def monitor_status(ctx):
    """Show the last persisted status snapshot."""
    from utils.formatters import format_ms, format_pct, format_timestamp, time_ago
    from utils.timeutil import parse_timestamp

    c = _get_components(ctx)
    path = c["settings"].status_path
    if not path.exists():
        console.print("[dim]No status snapshot yet. Run 'monitor run' or 'monitor check'.[/dim]")
        return
    with open(path) as f:
        status = json.load(f)

    style = STATUS_STYLES.get(status.get("status"), "red")
    table = Table(title="Current Status", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Status", f"[{style}]{status.get('status', 'unknown').upper()}[/{style}]")
    updated = status.get("timestamp")
    ago = time_ago(parse_timestamp(updated)) if updated else "N/A"
    table.add_row("Updated", f"{format_timestamp(updated)} ({ago})")
    table.add_row("Uptime", format_pct(status.get("uptime"), with_color=True))
    table.add_row("Total Checks", str(status.get("totalChecks", 0)))
    table.add_row("Monitoring For", format_ms(status.get("monitoringDurationMs")))
    console.print(table)


@monitor.command("report")
@click.option("--save", is_flag=True, help="Also write the report JSON")
@click.pass_context
def monitor_report(ctx, save):
    """Build a report from the persisted history."""
    from monitor.report import render_report

    c = _get_components(ctx)
    c["history"].load()
    # two daily files cover the 24h alert window
    c["alert_log"].load(days=2)
    report = c["report_builder"].build()
    render_report(report, console)
    if save:
        path = c["report_builder"].save(report)
        console.print(f"\n[green]✓[/green] Report saved to {path}")


@monitor.command("dashboard")
@click.option("--output", default=None, help="Output HTML path")
@click.pass_context
def monitor_dashboard(ctx, output):
    """Write the static HTML status dashboard."""
    from dashboard.html_report import HTMLDashboardGenerator

    c = _get_components(ctx)
    path = HTMLDashboardGenerator(c["settings"]).generate(output)
    if path is None:
        console.print("[yellow]No monitoring data available for dashboard[/yellow]")
        return
    console.print(f"[green]✓[/green] Dashboard created: {path}")


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert rules and fired alerts."""
    pass


@alerts.command("rules")
@click.pass_context
def alerts_rules(ctx):
    """List all configured alert rules."""
    c = _get_components(ctx)
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Cooldown")
    table.add_column("Channels")
    table.add_column("Enabled")
    for r in c["rules"].get_all_rules():
        cond = r.condition.to_dict()
        if "pattern" in cond:
            cond_str = f"/{cond['pattern']}/i"
        else:
            operand = cond.get("threshold", cond.get("value"))
            cond_str = f"{cond['metric']} {cond['operator']} {operand}"
        table.add_row(
            r.id, r.name, r.category.value, cond_str, r.severity.value,
            f"{r.cooldown_seconds / 60:g}m",
            ", ".join(ch.kind.value for ch in r.channels if ch.enabled),
            "[green]✓[/green]" if r.enabled else "[red]✗[/red]",
        )
    console.print(table)


@alerts.command("test")
@click.pass_context
def alerts_test(ctx):
    """Test all rules (ignore cooldowns) against the latest health record."""
    c = _get_components(ctx)
    c["history"].load()
    record = c["history"].latest()
    if record is None:
        console.print("[dim]No history yet, sampling probes...[/dim]")
        record = c["sampler"].sample()
    results = c["alert_engine"].test_rules(record)

    table = Table(title="Alert Rules Test", show_header=True)
    table.add_column("Rule")
    table.add_column("Category")
    table.add_column("Current")
    table.add_column("Would Fire")
    table.add_column("Cooldown")
    table.add_column("Enabled")
    for r in results:
        fire_str = "[green]YES[/green]" if r["would_fire"] else "[dim]no[/dim]"
        val = "N/A" if r["current_value"] is None else str(r["current_value"])
        table.add_row(r["name"], r["category"], val, fire_str,
                      "active" if r["in_cooldown"] else "-", "✓" if r["enabled"] else "✗")
    console.print(table)


@alerts.command("status")
@click.option("--days", default=7, help="Days of alert log to load")
@click.pass_context
def alerts_status(ctx, days):
    """Show active alerts by severity."""
    c = _get_components(ctx)
    c["alert_log"].load(days=days)
    summary = c["alert_engine"].status_summary()
    by_sev = summary["by_severity"]
    console.print("[bold blue]Alert System Status[/bold blue]")
    console.print(f"Total Active Alerts: {summary['active']}")
    console.print(f"Critical: {by_sev['critical']}")
    console.print(f"High: {by_sev['high']}")
    console.print(f"Medium: {by_sev['medium']}")
    console.print(f"Low: {by_sev['low']}")
    console.print(f"\nTotal Rules: {summary['total_rules']} ({summary['enabled_rules']} enabled)")


@alerts.command("resolve")
@click.argument("alert_id")
@click.option("--days", default=7, help="Days of alert log to search")
@click.pass_context
def alerts_resolve(ctx, alert_id, days):
    """Mark a fired alert as resolved."""
    c = _get_components(ctx)
    c["alert_log"].load(days=days)
    if c["alert_engine"].resolve(alert_id):
        console.print(f"[green]✓[/green] Alert {alert_id} resolved")
    else:
        console.print(f"[red]✗[/red] Alert {alert_id} not found or already resolved")
        ctx.exit(1)


@alerts.command("history")
@click.option("--days", default=7, help="Days to look back")
@click.option("--active", is_flag=True, help="Only unresolved alerts")
@click.pass_context
def alerts_history(ctx, days, active):
    """Show past alerts."""
    c = _get_components(ctx)
    log = c["alert_log"]
    log.load(days=days)
    recent = log.active() if active else log.all()
    if not recent:
        console.print("[dim]No alerts in history[/dim]")
        return
    table = Table(title=f"Alert History (last {days}d)", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Title")
    table.add_column("Resolved")
    for a in sorted(recent, key=lambda a: a.timestamp, reverse=True)[:50]:
        table.add_row(a.timestamp.strftime("%Y-%m-%d %H:%M"), a.id, a.severity.value,
                      a.title[:60], "✓" if a.resolved else "")
    console.print(table)


if __name__ == "__main__":
    cli()
