"""Row to instance materialization.

A row becomes an instance in one pass: scalar fields are coerced and
stored, the id is set, then every relationship collection is fetched
and materialized recursively before the instance is marked persisted.
Any failure along the way fails the whole call, so callers never see a
half-loaded instance.

One materialization call tracks the (model, id) pairs it has built. A
pair met again resolves to the instance already built for it, which is
what makes self-referential and cyclic schemas terminate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from basie.coercion import from_storage
from basie.config.models import MaterializeConfig
from basie.core.errors import ConfigurationError
from basie.engine import get_executor
from basie.metadata import PRIMARY_KEY, get_metadata, resolve_type
from basie.statements import Statement, select_children

if TYPE_CHECKING:
    from basie.model import Model

_config = MaterializeConfig()


def configure(config: MaterializeConfig) -> None:
    global _config
    _config = config


def get_config() -> MaterializeConfig:
    return _config


@dataclass
class MaterializeContext:
    """State shared by every row materialized for one façade call."""

    max_depth: int = field(default_factory=lambda: _config.max_depth)
    concurrent: bool = field(default_factory=lambda: _config.concurrent_children)
    seen: dict[tuple[type, int], Any] = field(default_factory=dict)


async def fetch(
    cls: type[Model],
    statement: Statement,
    ctx: MaterializeContext | None = None,
    depth: int = 0,
) -> list[Model]:
    """Execute a SELECT for `cls` and materialize every returned row."""
    ctx = ctx or MaterializeContext()
    rows = await get_executor(cls).execute(statement.sql, statement.params)
    return [await materialize(cls, row, ctx, depth) for row in rows]


async def _fetch_concurrently(
    queries: list[tuple[type[Model], Statement]],
    ctx: MaterializeContext,
    depth: int,
) -> list[list[Model]]:
    """Run sibling relationship queries together.

    The first failure cancels the siblings still running and is raised as
    is, not wrapped in an ExceptionGroup.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [
                group.create_task(fetch(foreign, stmt, ctx, depth)) for foreign, stmt in queries
            ]
    except BaseExceptionGroup as eg:
        raise eg.exceptions[0]  # noqa: B904
    return [task.result() for task in tasks]


async def materialize(
    cls: type[Model],
    row: Mapping[str, Any],
    ctx: MaterializeContext | None = None,
    depth: int = 0,
) -> Model:
    """Build a persisted `cls` instance from one row.

    Raises:
        ConfigurationError: The row lacks a mapped column, a relationship
            target cannot be resolved, or nesting exceeds max_depth.
        ExecutionError: A relationship query failed.
    """
    ctx = ctx or MaterializeContext()
    meta = get_metadata(cls)

    if PRIMARY_KEY not in row:
        raise ConfigurationError.missing_column(meta.table_name, PRIMARY_KEY)
    id = int(row[PRIMARY_KEY])

    key = (cls, id)
    if key in ctx.seen:
        return ctx.seen[key]  # type: ignore[no-any-return]
    if depth > ctx.max_depth:
        raise ConfigurationError.depth_exceeded(cls.__name__, ctx.max_depth)

    props: dict[str, Any] = {}
    for f in meta.fields:
        if f.column_name not in row:
            raise ConfigurationError.missing_column(meta.table_name, f.column_name)
        props[f.field_name] = from_storage(row[f.column_name], f.field_type)

    instance = cls._allocate(id, props)
    ctx.seen[key] = instance

    if meta.child_fields:
        queries: list[tuple[type[Model], Statement]] = []
        for child in meta.child_fields:
            foreign = resolve_type(child.foreign_type)
            queries.append(
                (foreign, select_children(get_metadata(foreign), meta.foreign_key_for(child), id))
            )
        collections: Sequence[list[Model]]
        if ctx.concurrent:
            collections = await _fetch_concurrently(queries, ctx, depth + 1)
        else:
            collections = [await fetch(foreign, stmt, ctx, depth + 1) for foreign, stmt in queries]
        for child, collection in zip(meta.child_fields, collections, strict=True):
            props[child.field_name] = collection

    instance._mark_persisted()
    return instance
