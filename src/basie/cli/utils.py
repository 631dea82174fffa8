"""CLI utilities."""

import importlib
import sys
from pathlib import Path

import click

from basie.engine import Database
from basie.metadata import registered_types
from basie.model import Model


def load_models(module_name: str) -> list[type[Model]]:
    """Import a module and return the mapped models it defines.

    The working directory is importable, as it is for `python -m`.

    Raises:
        click.ClickException: The module cannot be imported or maps no models.
    """
    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.ClickException(f"Cannot import {module_name}: {e}") from e

    models = [
        t
        for t in registered_types()
        if issubclass(t, Model) and t.__module__ == module.__name__
    ]
    if not models:
        raise click.ClickException(f"No mapped models found in {module_name}")
    return models


def open_database(url: str | None) -> Database:
    """Database for a CLI run: --database if given, else configuration."""
    if url is not None:
        return Database(url)
    from basie.config.loader import load_config

    return Database.from_config(load_config().database)
