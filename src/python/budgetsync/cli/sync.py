"""Sync CLI commands."""

from __future__ import annotations

import click

from budgetsync.cli.common import get_client
from budgetsync.schema import STATUS_SYNCED


@click.group()
def sync() -> None:
    """Sync commands."""


@sync.command("run")
@click.pass_context
def run(ctx: click.Context) -> None:
    """Run one sync round against the server."""
    with get_client(ctx) as client:
        status = client.sync_now()
        summary = client.sync_status()

    click.echo(f"Sync: {status}")
    click.echo(f"  Cursor: {summary['lastSyncAt']}")
    click.echo(f"  Pending: {sum(summary['pending'].values())}")
    if status != STATUS_SYNCED:
        ctx.exit(1)


@sync.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the sync cursor and records waiting to be pushed."""
    with get_client(ctx) as client:
        summary = client.sync_status()

    click.echo(f"Cursor: {summary['lastSyncAt']}")
    click.echo("Pending records:")
    for collection, count in summary["pending"].items():
        click.echo(f"  {collection:<16} {count}")
