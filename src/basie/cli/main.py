"""Basie CLI - basie command."""

import click

from basie import __version__
from basie.cli.tables import create_command, drop_command, schema_command
from basie.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="basie")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--database", metavar="URL", default=None, help="SQLAlchemy URL of the database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, database: str | None) -> None:
    """Basie - manage the tables of mapped models."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["database"] = database
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(schema_command, name="schema")
cli.add_command(create_command, name="create")
cli.add_command(drop_command, name="drop")


if __name__ == "__main__":
    cli()
