"""Server CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from budgetsync.authority import AuthoritativeStore
from budgetsync.exceptions import NotFoundError


@click.group()
def server() -> None:
    """Authoritative server commands."""


@server.command("serve")
@click.option(
    "--db",
    "db_path",
    required=True,
    type=click.Path(path_type=Path),
    help="Path to the authoritative database.",
)
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=3000, show_default=True, help="Bind port.")
def serve(db_path: Path, host: str, port: int) -> None:
    """Serve the sync API."""
    import uvicorn

    from budgetsync.server import create_app

    with AuthoritativeStore(db_path) as store:
        click.echo(f"budgetsync server running at http://{host}:{port}")
        uvicorn.run(create_app(store), host=host, port=port)


@server.command("delete-budget")
@click.argument("budget_id")
@click.option(
    "--db",
    "db_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Path to the authoritative database.",
)
def delete_budget(budget_id: str, db_path: Path) -> None:
    """Hard delete a budget and its rows without writing tombstones.

    Devices that never saw the deletion keep their copies, and unsynced edits
    to removed rows are re-inserted on their next sync.
    """
    with AuthoritativeStore(db_path) as store:
        try:
            store.admin_cascade_delete("budgets", budget_id)
        except NotFoundError as exc:
            raise click.ClickException(str(exc)) from exc
    click.echo(f"Hard deleted budget {budget_id}")
