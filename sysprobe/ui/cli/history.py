"""
CLI command for the detection history ledger.

Thin wrapper over ``sysprobe.core.persistence.history``.
"""

from __future__ import annotations

import json
import sys

import click

from sysprobe.core.persistence.history import DEFAULT_RECENT


@click.command()
@click.option("--limit", "-n", default=DEFAULT_RECENT, type=int, show_default=True, help="Records to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show recent detection history."""
    from sysprobe.core.config.loader import ConfigError, load_config
    from sysprobe.core.persistence.history import HistoryWriter

    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    writer = HistoryWriter(config.history_path)
    records = writer.read_recent(limit)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.secho("No history recorded yet.", fg="yellow")
        return

    click.secho(f"\n📜 History ({len(records)} of {writer.entry_count()})", fg="cyan", bold=True)
    click.echo()
    for record in records:
        states = "  ".join(
            f"{name}={'on' if value else 'off'}{'*' if name in record.defaulted else ''}"
            for name, value in record.capabilities.items()
        )
        click.echo(f"   {record.timestamp[:19]}  {states}")
        if record.notes and ctx.obj.get("verbose"):
            click.echo(f"      {record.notes}")

    if any(r.defaulted for r in records):
        click.echo()
        click.echo("   * value came from the unknown-policy default")
    click.echo()
