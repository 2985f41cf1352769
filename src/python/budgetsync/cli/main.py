"""budgetsync CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from budgetsync.__version__ import __version__
from budgetsync.cli.budget import budget
from budgetsync.cli.category import category
from budgetsync.cli.entry import entry
from budgetsync.cli.server import server
from budgetsync.cli.sync import sync
from budgetsync.cli.transaction import transaction


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="budgetsync")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the local replica database.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to a JSON config file.",
)
@click.option("--server", "server_url", help="Sync server base URL.")
@click.option("--no-sync", is_flag=True, help="Do not sync after changes.")
@click.pass_context
def main(
    ctx: click.Context,
    db_path: Path | None,
    config_path: Path | None,
    server_url: str | None,
    no_sync: bool,
) -> None:
    """budgetsync CLI entry point."""
    ctx.obj = {
        "db_path": db_path,
        "config_path": config_path,
        "server_url": server_url,
        "enable_sync": not no_sync,
    }


main.add_command(budget)
main.add_command(category)
main.add_command(entry)
main.add_command(transaction)
main.add_command(sync)
main.add_command(server)


if __name__ == "__main__":
    main()
