"""Budget CLI commands."""

from __future__ import annotations

import click

from budgetsync.cli.common import finish_sync, get_client, parse_date
from budgetsync.exceptions import NotFoundError
from budgetsync.models import BudgetDTO
from budgetsync.schema import BUDGET_TYPES, PERIOD_TYPES


@click.group()
def budget() -> None:
    """Budget commands."""


@budget.command("list")
@click.pass_context
def list_budgets(ctx: click.Context) -> None:
    """List budgets on this device.

    Examples:
        budgetsync budget list
    """
    with get_client(ctx) as client:
        budgets = client.list_budgets()

    if not budgets:
        click.echo("No budgets found.")
        return

    click.echo("\nBudgets:")
    click.echo("-" * 72)
    click.echo(f"{'Id':<38} {'Type':<6} {'Name':<28}")
    click.echo("-" * 72)
    for record in budgets:
        click.echo(f"{record['id']:<38} {record['type']:<6} {record['name']:<28}")
    click.echo("-" * 72)


@budget.command("add")
@click.option("--name", required=True, help="Budget name.")
@click.option(
    "--type",
    "budget_type",
    type=click.Choice(sorted(BUDGET_TYPES)),
    default="time",
    show_default=True,
    help="Track hours or money.",
)
@click.option(
    "--period",
    "period_type",
    type=click.Choice(sorted(PERIOD_TYPES)),
    default="weekly",
    show_default=True,
    help="Budget period.",
)
@click.option("--start-day", type=int, default=0, show_default=True, help="Period start day.")
@click.pass_context
def add_budget(
    ctx: click.Context,
    name: str,
    budget_type: str,
    period_type: str,
    start_day: int,
) -> None:
    """Create a budget."""
    try:
        dto = BudgetDTO(
            name=name,
            type=budget_type,
            period_type=period_type,
            period_start_day=start_day,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    with get_client(ctx) as client:
        record = client.add_budget(dto)
        click.echo(f"Added budget {record['id']}")
        finish_sync(ctx, client)


@budget.command("rename")
@click.argument("budget_id")
@click.option("--name", required=True, help="New budget name.")
@click.pass_context
def rename_budget(ctx: click.Context, budget_id: str, name: str) -> None:
    """Rename a budget."""
    with get_client(ctx) as client:
        try:
            record = client.rename_budget(budget_id, name)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="--name") from exc
        click.echo(f"Renamed budget {record['id']} to {record['name']}")
        finish_sync(ctx, client)


@budget.command("delete")
@click.argument("budget_id")
@click.pass_context
def delete_budget(ctx: click.Context, budget_id: str) -> None:
    """Delete a budget and everything in it on all devices."""
    with get_client(ctx) as client:
        try:
            client.delete_budget(budget_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Deleted budget {budget_id}")
        finish_sync(ctx, client)


@budget.command("summary")
@click.argument("budget_id")
@click.option("--date", "date_value", help="Any day in the period, YYYY-MM-DD. Defaults to today.")
@click.pass_context
def budget_summary(ctx: click.Context, budget_id: str, date_value: str | None) -> None:
    """Show target against actual per category for one period.

    Examples:
        budgetsync budget summary 5f1c... --date 2026-02-18
    """
    reference = parse_date(date_value, "--date")
    with get_client(ctx) as client:
        try:
            summary = client.period_summary(budget_id, reference)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc

    click.echo(f"\nPeriod {summary['periodStart']} to {summary['periodEnd']}")
    click.echo("-" * 72)
    click.echo(f"{'Category':<36} {'Target':>10} {'Actual':>10} {'Remaining':>12}")
    click.echo("-" * 72)
    for row in summary["categories"]:
        click.echo(
            f"{row['name']:<36} {row['target']:>10.2f} {row['actual']:>10.2f} {row['remaining']:>12.2f}"
        )
    if summary["uncategorized"]:
        click.echo(f"{'Uncategorized':<36} {'':>10} {summary['uncategorized']:>10.2f}")
    click.echo("-" * 72)
    click.echo(f"{'Total':<36} {summary['totalTarget']:>10.2f} {summary['totalActual']:>10.2f}")
