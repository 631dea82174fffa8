"""basie schema/create/drop commands - manage tables of mapped models."""

from __future__ import annotations

import asyncio

import click
import questionary
from rich.console import Console
from rich.syntax import Syntax

from basie.cli.utils import load_models, open_database
from basie.core.errors import BasieError
from basie.engine import Database
from basie.metadata import get_metadata
from basie.model import Model
from basie.statements import create_table, drop_table


def render_schema(models: list[type[Model]]) -> str:
    """CREATE TABLE statements for `models`, one per line."""
    return "\n".join(
        create_table(get_metadata(m), m.__name__).sql + ";" for m in models
    )


async def _apply(database: Database, models: list[type[Model]], *, drop: bool) -> list[str]:
    done: list[str] = []
    for model in models:
        meta = get_metadata(model)
        stmt = drop_table(meta) if drop else create_table(meta, model.__name__)
        await database.execute_ddl(stmt.sql)
        done.append(meta.table_name)
    return done


def apply_tables(database: Database, models: list[type[Model]], *, drop: bool = False) -> list[str]:
    """Create (or drop) the tables of `models` and return their names."""
    return asyncio.run(_apply(database, models, drop=drop))


@click.command()
@click.argument("module")
def schema_command(module: str) -> None:
    """Print the CREATE TABLE statements of the models in MODULE."""
    models = load_models(module)
    try:
        ddl = render_schema(models)
    except BasieError as e:
        raise click.ClickException(str(e)) from e
    Console().print(Syntax(ddl, "sql", word_wrap=True))


@click.command()
@click.argument("module")
@click.pass_context
def create_command(ctx: click.Context, module: str) -> None:
    """Create the tables of the models in MODULE (existing tables are kept)."""
    console = Console(stderr=True)
    models = load_models(module)
    database = open_database(ctx.obj.get("database"))
    try:
        tables = apply_tables(database, models)
    except BasieError as e:
        raise click.ClickException(str(e)) from e
    finally:
        database.close()
    for table in tables:
        console.print(f"  [green]✓[/green] {table}")


@click.command()
@click.argument("module")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def drop_command(ctx: click.Context, module: str, yes: bool) -> None:
    """Drop the tables of the models in MODULE, with all their rows."""
    console = Console(stderr=True)
    models = load_models(module)

    if not yes:
        tables = ", ".join(get_metadata(m).table_name for m in models)
        answer = questionary.confirm(f"Drop {tables}? This cannot be undone.", default=False).ask()
        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return

    database = open_database(ctx.obj.get("database"))
    try:
        dropped = apply_tables(database, models, drop=True)
    except BasieError as e:
        raise click.ClickException(str(e)) from e
    finally:
        database.close()
    for table in dropped:
        console.print(f"  [red]✗[/red] {table}")
