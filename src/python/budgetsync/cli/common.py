"""Shared CLI helpers."""

from __future__ import annotations

import dataclasses
import datetime as dt
from decimal import Decimal

import click

from budgetsync.client import BudgetClient
from budgetsync.config import load_config, load_sync_config
from budgetsync.transport import HttpTransport


def parse_date(value: str | None, field_name: str) -> dt.date | None:
    """Parse an ISO date string into a date."""
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM-DD format.", param_hint=field_name) from exc


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except Exception as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def get_client(ctx: click.Context) -> BudgetClient:
    """Build a client from Click context.

    Background triggers stay off for CLI runs: a process that exits right
    after a command would drop a debounced round. Commands call
    ``finish_sync`` instead.
    """
    payload = ctx.obj or {}
    sync_config = load_sync_config(load_config(payload.get("config_path")))
    if payload.get("server_url"):
        sync_config = dataclasses.replace(sync_config, server_url=payload["server_url"].rstrip("/"))
    try:
        return BudgetClient(
            db_path=payload.get("db_path"),
            enable_sync=False,
            transport=HttpTransport(sync_config),
            config_path=payload.get("config_path"),
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc


def finish_sync(ctx: click.Context, client: BudgetClient) -> None:
    """Push the command's changes right away unless sync is disabled."""
    payload = ctx.obj or {}
    if not payload.get("enable_sync", True):
        return
    status = client.sync_now()
    click.echo(f"Sync: {status}")
