"""
sysprobe — CLI entrypoint.

Usage:
    sysprobe --help
    sysprobe refresh
    sysprobe query usb
    python -m sysprobe.main diagnostics bluetooth
"""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click

from sysprobe import __version__
from sysprobe.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="sysprobe")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to sysprobe.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """sysprobe — detect Bluetooth, USB, firewall and network state."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None  # SYSPROBE_LOG_LEVEL, then WARNING

    setup_logging(level=level, quiet_third_party=not debug)


# ── Helpers ─────────────────────────────────────────────────────────


def _load_config(ctx: click.Context):  # type: ignore[no-untyped-def]
    """Load sysprobe.yml or exit 1 with the error."""
    from sysprobe.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _build_engine(ctx: click.Context, full: bool = False, mock: bool = False):  # type: ignore[no-untyped-def]
    from sysprobe.core.config.loader import ConfigError
    from sysprobe.core.use_cases.refresh import build_engine

    config = _load_config(ctx)
    try:
        return config, build_engine(config, full=full, mock=mock)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _capability_arg(ctx: click.Context, param: click.Parameter, value: str):  # type: ignore[no-untyped-def]
    from sysprobe.core.models.capability import Capability

    try:
        return Capability.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _print_report(report, quiet: bool = False) -> None:  # type: ignore[no-untyped-def]
    """Print one line per capability."""
    for cap, res in report.results.items():
        if res.value:
            click.secho(f"   ✓ {cap.label:<10}", fg="green", nl=False)
            click.echo(" enabled ", nl=False)
        else:
            click.secho(f"   ✗ {cap.label:<10}", fg="red", nl=False)
            click.echo(" disabled", nl=False)

        if res.defaulted:
            click.secho(f"  (no definitive probe; {res.policy.value} default)", fg="yellow")
        else:
            click.echo(f"  (via {res.source})")

    if not quiet:
        click.echo(f"\n   {report.report_id} in {report.duration_ms}ms")


def _print_trail(result) -> None:  # type: ignore[no-untyped-def]
    verdict_colors = {"true": "green", "false": "red", "unknown": "yellow"}
    for i, entry in enumerate(result.trail, start=1):
        click.echo(f"   {i}. {entry.probe:<26}", nl=False)
        click.secho(f"{entry.verdict.value:<8}", fg=verdict_colors[entry.verdict.value], nl=False)
        if entry.invocation_failed:
            click.echo(f" {entry.error or 'invocation failed'}")
        else:
            click.echo(f" exit={entry.exit_code} {entry.duration_ms}ms  {entry.executable}")


# ── Detection ───────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-save", is_flag=True, help="Don't record the report to history.")
@click.option("--full", is_flag=True, help="Run every probe instead of stopping at the first answer.")
@click.option("--mock", is_flag=True, help="Use mock runner (no real execution).")
@click.option("--note", default=None, help="Note stored with the history record.")
@click.pass_context
def refresh(
    ctx: click.Context,
    as_json: bool,
    no_save: bool,
    full: bool,
    mock: bool,
    note: str | None,
) -> None:
    """Run a detection cycle and show every capability."""
    from sysprobe.core.use_cases.refresh import run_refresh

    result = run_refresh(
        config_path=ctx.obj.get("config_path"),
        save=not no_save,
        full=full,
        mock=mock,
        note=note,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    click.secho("\n🔍 Capability detection", fg="cyan", bold=True)
    if mock:
        click.secho("   Mode: mock (no real execution)", fg="yellow")
    click.echo()
    _print_report(report, quiet=ctx.obj.get("quiet", False))

    if result.saved:
        click.secho("   💾 Recorded to history", fg="cyan")
    for err in result.errors:
        click.secho(f"   ⚠️  {err}", fg="yellow")

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the last recorded report without probing."""
    from sysprobe.core.use_cases.status import get_status

    result = get_status(ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho("\n📊 Last recorded state", fg="cyan", bold=True)
    click.echo(f"   History records: {result.history_count}")
    click.echo()

    if result.report is None:
        click.secho("   No report recorded yet. Run 'sysprobe refresh'.", fg="yellow")
        click.echo()
        return

    click.echo(f"   Generated: {result.report.generated_at}")
    _print_report(result.report, quiet=True)
    click.echo()


@cli.command()
@click.argument("capability", callback=_capability_arg)
@click.option("--mock", is_flag=True, help="Use mock runner (no real execution).")
@click.pass_context
def query(ctx: click.Context, capability, mock: bool) -> None:  # type: ignore[no-untyped-def]
    """Detect one capability; exit 0 when enabled, 1 when disabled."""
    _config, engine = _build_engine(ctx, mock=mock)
    engine.refresh()
    value = engine.query(capability)

    if not ctx.obj.get("quiet"):
        click.echo("enabled" if value else "disabled")
    sys.exit(0 if value else 1)


@cli.command()
@click.argument("capability", callback=_capability_arg)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--full", is_flag=True, help="Run every probe instead of stopping at the first answer.")
@click.option("--mock", is_flag=True, help="Use mock runner (no real execution).")
@click.pass_context
def diagnostics(ctx: click.Context, capability, as_json: bool, full: bool, mock: bool) -> None:  # type: ignore[no-untyped-def]
    """Show the probe trail behind one capability's value."""
    _config, engine = _build_engine(ctx, full=full, mock=mock)
    engine.refresh()
    result = engine.result(capability)

    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    state = "enabled" if result.value else "disabled"
    click.secho(f"\n🩺 {capability.label}: {state}", fg="cyan", bold=True)
    if result.defaulted:
        click.secho(f"   No probe was definitive; {result.policy.value} default applied", fg="yellow")
    else:
        click.echo(f"   Decided by: {result.source}")
    click.echo()
    _print_trail(result)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def probes(ctx: click.Context, as_json: bool) -> None:
    """List the probe catalog and which executables are present."""
    from sysprobe.adapters.shell.command import SubprocessProbeRunner

    _config, engine = _build_engine(ctx)
    runner = SubprocessProbeRunner()
    variables = engine.settings.variables

    listing = {
        cap.value: {
            "policy": spec.on_unknown.value,
            "probes": [
                {
                    "name": p.name,
                    "interpreter": p.interpreter,
                    "executable": runner.locate(p.candidates),
                    "args": p.render_args(variables),
                    "description": p.description,
                }
                for p in spec.probes
            ],
        }
        for cap, spec in engine.catalog.items()
    }

    if as_json:
        click.echo(json.dumps(listing, indent=2))
        return

    click.secho("\n🧰 Probe catalog", fg="cyan", bold=True)
    for cap in engine.capabilities:
        entry = listing[cap.value]
        click.echo()
        click.secho(f"   {cap.label}", bold=True, nl=False)
        click.echo(f"  (unknown → {entry['policy']})")
        for p in entry["probes"]:
            if p["executable"]:
                click.secho("     ✓ ", fg="green", nl=False)
                click.echo(f"{p['name']:<26} {p['executable']} {' '.join(p['args'])}")
            else:
                click.secho("     ✗ ", fg="red", nl=False)
                click.echo(f"{p['name']:<26} (not installed)")
    click.echo()


@cli.command()
@click.option("--interval", "-i", default=30.0, type=float, show_default=True, help="Seconds between refreshes.")
@click.option("--count", "-n", default=None, type=int, help="Stop after N refreshes.")
@click.option("--no-save", is_flag=True, help="Don't record reports to history.")
@click.option("--mock", is_flag=True, help="Use mock runner (no real execution).")
@click.pass_context
def watch(ctx: click.Context, interval: float, count: int | None, no_save: bool, mock: bool) -> None:
    """Refresh periodically and print each report."""
    from sysprobe.core.use_cases.monitor import Monitor
    from sysprobe.core.use_cases.refresh import build_sinks

    if interval <= 0:
        raise click.BadParameter("must be positive", param_hint="--interval")

    config, engine = _build_engine(ctx, mock=mock)
    sinks = [] if no_save else build_sinks(config)
    monitor = Monitor(engine, sinks, interval=interval)
    quiet = ctx.obj.get("quiet", False)

    click.secho(f"👀 Watching every {interval:g}s (Ctrl+C to stop)", fg="cyan")
    done = 0
    try:
        while count is None or done < count:
            report = monitor.run_once()
            done += 1
            click.echo()
            click.secho(f"── {report.generated_at}", fg="cyan")
            _print_report(report, quiet=quiet)
            if count is not None and done >= count:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        monitor.stop()
        click.echo()

    click.secho(f"Stopped after {done} refresh(es)", fg="cyan")


# ── Configuration ───────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate sysprobe.yml configuration."""
    from sysprobe.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File: {result.config_path or '(built-in defaults)'}")
        click.echo(f"   Probes: {result.probe_count}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── Web ─────────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.option("--interval", "-i", default=30.0, type=float, show_default=True, help="Background refresh interval (0 disables).")
@click.option("--mock", is_flag=True, help="Use mock runner (no real execution).")
@click.pass_context
def web(ctx: click.Context, host: str, port: int, interval: float, mock: bool) -> None:
    """Serve the JSON API with a background monitor."""
    from sysprobe.core.config.loader import ConfigError
    from sysprobe.ui.web.server import create_app, run_server

    try:
        app = create_app(
            config_path=ctx.obj.get("config_path"),
            mock_mode=mock,
            monitor_interval=interval if interval > 0 else None,
        )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    debug = ctx.obj.get("debug", False)

    click.echo()
    click.secho("⚡ sysprobe — JSON API", bold=True)
    click.echo(f"   API:      http://{host}:{port}/api/status")
    if interval > 0:
        click.echo(f"   Refresh:  every {interval:g}s")
    if mock:
        click.secho("   Mode: mock (no real execution)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-commands from sysprobe/ui/cli/ ─────────────────────

from sysprobe.ui.cli.history import history  # noqa: E402

cli.add_command(history)


if __name__ == "__main__":
    cli()
