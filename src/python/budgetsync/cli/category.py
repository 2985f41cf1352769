"""Category CLI commands."""

from __future__ import annotations

import click

from budgetsync.cli.common import finish_sync, get_client, parse_decimal
from budgetsync.exceptions import NotFoundError
from budgetsync.models import CategoryDTO


@click.group()
def category() -> None:
    """Category commands."""


@category.command("list")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.pass_context
def list_categories(ctx: click.Context, budget_id: str) -> None:
    """List categories of a budget in display order.

    Examples:
        budgetsync category list --budget 5f1c...
    """
    with get_client(ctx) as client:
        categories = client.list_categories(budget_id)

    if not categories:
        click.echo(f"No categories found for budget '{budget_id}'.")
        return

    click.echo("\nCategories:")
    click.echo("-" * 60)
    click.echo(f"{'Seq':<5} {'Name':<40} {'Target':>10}")
    click.echo("-" * 60)
    for record in categories:
        target = record.get("targetAmount") or 0
        click.echo(f"{record.get('sortOrder') or 0:<5} {record['name']:<40} {target:>10}")
    click.echo("-" * 60)


@category.command("add")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.option("--name", required=True, help="Category name.")
@click.option("--color", default="#60a5fa", show_default=True, help="Display color.")
@click.option("--target", "target", default="0", show_default=True, help="Target per period.")
@click.option("--sort-order", type=int, default=0, show_default=True, help="Display position.")
@click.pass_context
def add_category(
    ctx: click.Context,
    budget_id: str,
    name: str,
    color: str,
    target: str,
    sort_order: int,
) -> None:
    """Add a category to a budget."""
    target_amount = parse_decimal(target, "--target")
    try:
        dto = CategoryDTO(
            budget_id=budget_id,
            name=name,
            color=color,
            target_amount=target_amount,
            sort_order=sort_order,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    with get_client(ctx) as client:
        try:
            record = client.add_category(dto)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Added category {record['id']}")
        finish_sync(ctx, client)
