"""Money transaction CLI commands."""

from __future__ import annotations

import click

from budgetsync.cli.common import finish_sync, get_client, parse_date, parse_decimal
from budgetsync.exceptions import NotFoundError
from budgetsync.models import TransactionDTO


@click.group()
def transaction() -> None:
    """Transaction commands."""


@transaction.command("add")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.option("--date", "date_value", required=True, help="Transaction date in YYYY-MM-DD.")
@click.option("--amount", required=True, help="Signed amount, negative for spending.")
@click.option("--category", "category_id", help="Category id.")
@click.option("--payee", default="", help="Payee.")
@click.option("--memo", default="", help="Memo.")
@click.pass_context
def add_transaction(
    ctx: click.Context,
    budget_id: str,
    date_value: str,
    amount: str,
    category_id: str | None,
    payee: str,
    memo: str,
) -> None:
    """Record a money transaction.

    Examples:
        budgetsync transaction add --budget 5f1c... --date 2026-03-01 --amount -12.50 --payee Cafe
    """
    transaction_date = parse_date(date_value, "--date")
    amount_value = parse_decimal(amount, "--amount")
    try:
        dto = TransactionDTO(
            budget_id=budget_id,
            date=transaction_date,
            amount=amount_value,
            payee=payee,
            memo=memo,
            category_id=category_id,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    with get_client(ctx) as client:
        try:
            record = client.add_transaction(dto)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Added transaction {record['id']}")
        finish_sync(ctx, client)


@transaction.command("list")
@click.option("--budget", "budget_id", required=True, help="Budget id.")
@click.option("--start-date", help="Filter start date in YYYY-MM-DD.")
@click.option("--end-date", help="Filter end date in YYYY-MM-DD.")
@click.pass_context
def list_transactions(
    ctx: click.Context,
    budget_id: str,
    start_date: str | None,
    end_date: str | None,
) -> None:
    """List transactions of a budget, newest first."""
    start = parse_date(start_date, "--start-date")
    end = parse_date(end_date, "--end-date")
    with get_client(ctx) as client:
        transactions = client.list_transactions(budget_id, start, end)

    if not transactions:
        click.echo("No transactions found.")
        return
    for record in transactions:
        click.echo(
            f"{record['date']}\t{record['amount']:.2f}\t{record.get('payee') or ''}\t{record.get('categoryId') or '-'}"
        )


@transaction.command("delete")
@click.argument("transaction_id")
@click.pass_context
def delete_transaction(ctx: click.Context, transaction_id: str) -> None:
    """Delete a transaction."""
    with get_client(ctx) as client:
        try:
            client.delete_transaction(transaction_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Deleted transaction {transaction_id}")
        finish_sync(ctx, client)
