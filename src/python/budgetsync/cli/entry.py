"""Time entry CLI commands."""

from __future__ import annotations

import click

from budgetsync.cli.common import finish_sync, get_client, parse_date, parse_decimal
from budgetsync.exceptions import NotFoundError
from budgetsync.models import EntryDTO


@click.group()
def entry() -> None:
    """Time entry commands."""


@entry.command("add")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.option("--category", "category_id", required=True, help="Category id.")
@click.option("--date", "date_value", required=True, help="Entry date in YYYY-MM-DD.")
@click.option("--hours", help="Hours spent. Ignored when --start and --end are given.")
@click.option("--start", "start_time", help="Start time in HH:MM.")
@click.option("--end", "end_time", help="End time in HH:MM.")
@click.option("--note", help="Optional note.")
@click.pass_context
def add_entry(
    ctx: click.Context,
    budget_id: str,
    category_id: str,
    date_value: str,
    hours: str | None,
    start_time: str | None,
    end_time: str | None,
    note: str | None,
) -> None:
    """Log time against a category.

    Examples:
        budgetsync entry add --budget 5f1c... --category 9a2e... --date 2026-02-16 --hours 2.5
        budgetsync entry add --budget 5f1c... --category 9a2e... --date 2026-02-16 --start 22:30 --end 06:30
    """
    entry_date = parse_date(date_value, "--date")
    quantity = parse_decimal(hours, "--hours")
    try:
        dto = EntryDTO(
            budget_id=budget_id,
            category_id=category_id,
            date=entry_date,
            quantity=quantity or 0,
            start_time=start_time,
            end_time=end_time,
            note=note,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    with get_client(ctx) as client:
        try:
            record = client.add_entry(dto)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Added entry {record['id']} ({record['quantity']} h)")
        finish_sync(ctx, client)


@entry.command("list")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.option("--start-date", help="Filter start date in YYYY-MM-DD.")
@click.option("--end-date", help="Filter end date in YYYY-MM-DD.")
@click.pass_context
def list_entries(
    ctx: click.Context,
    budget_id: str,
    start_date: str | None,
    end_date: str | None,
) -> None:
    """List time entries of a budget by date."""
    start = parse_date(start_date, "--start-date")
    end = parse_date(end_date, "--end-date")
    with get_client(ctx) as client:
        entries = client.list_entries(budget_id, start, end)

    if not entries:
        click.echo("No entries found.")
        return
    for record in entries:
        times = ""
        if record.get("startTime") and record.get("endTime"):
            times = f"{record['startTime']}-{record['endTime']}"
        click.echo(
            f"{record['date']}\t{record['categoryId']}\t{record['quantity']}\t{times}\t{record.get('note') or ''}"
        )


@entry.command("delete")
@click.argument("entry_id")
@click.pass_context
def delete_entry(ctx: click.Context, entry_id: str) -> None:
    """Delete a time entry."""
    with get_client(ctx) as client:
        try:
            client.delete_entry(entry_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Deleted entry {entry_id}")
        finish_sync(ctx, client)
