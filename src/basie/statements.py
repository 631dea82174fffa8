"""Pure SQL statement builders.

Every builder returns a Statement: SQL text with `?` placeholders and
the ordered parameters to bind to them. Values never appear in the SQL
text; only identifiers taken from model metadata and caller-supplied
literal predicates do.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from basie.coercion import column_affinity, to_storage
from basie.core.errors import ConfigurationError
from basie.metadata import PRIMARY_KEY, TypeMetadata


@dataclass(frozen=True, slots=True)
class Statement:
    """SQL text plus positional parameters."""

    sql: str
    params: tuple[Any, ...] = ()


def quote(identifier: str) -> str:
    """Quote an SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'


def count_placeholders(predicate: str) -> int:
    """Count `?` placeholders outside quoted literals, identifiers and comments."""
    count = 0
    i = 0
    n = len(predicate)
    while i < n:
        ch = predicate[i]
        if ch in ("'", '"'):
            end = predicate.find(ch, i + 1)
            i = n if end == -1 else end + 1
            continue
        if predicate.startswith("--", i):
            end = predicate.find("\n", i)
            i = n if end == -1 else end + 1
            continue
        if predicate.startswith("/*", i):
            end = predicate.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue
        if ch == "?":
            count += 1
        i += 1
    return count


def _column_for(meta: TypeMetadata, model: str, name: str) -> str:
    if name == PRIMARY_KEY:
        return PRIMARY_KEY
    entry = meta.get_field(name)
    if entry is None:
        raise ConfigurationError.unknown_field(model, name)
    return entry.column_name


def _where_equal(
    meta: TypeMetadata, model: str, criteria: Mapping[str, Any]
) -> tuple[str, tuple[Any, ...]]:
    conditions: list[str] = []
    params: list[Any] = []
    for name, value in criteria.items():
        column = quote(_column_for(meta, model, name))
        if value is None:
            conditions.append(f"{column} IS NULL")
        else:
            conditions.append(f"{column} = ?")
            params.append(to_storage(value))
    if not conditions:
        return "", ()
    return " WHERE " + " AND ".join(conditions), tuple(params)


def select_by_id(meta: TypeMetadata, id: int) -> Statement:
    return Statement(
        f"SELECT * FROM {quote(meta.table_name)} WHERE {quote(PRIMARY_KEY)} = ? LIMIT 1",
        (id,),
    )


def select_first(meta: TypeMetadata) -> Statement:
    return Statement(
        f"SELECT * FROM {quote(meta.table_name)} ORDER BY {quote(PRIMARY_KEY)} LIMIT 1"
    )


def select_all(meta: TypeMetadata) -> Statement:
    return Statement(f"SELECT * FROM {quote(meta.table_name)} ORDER BY {quote(PRIMARY_KEY)}")


def select_where(
    meta: TypeMetadata,
    model: str,
    criteria: Mapping[str, Any],
    *,
    limit: int | None = None,
) -> Statement:
    """Equality-map selection; keys are field names, joined with AND.

    Raises:
        ConfigurationError: A key is not a registered field of the model.
    """
    where, params = _where_equal(meta, model, criteria)
    sql = f"SELECT * FROM {quote(meta.table_name)}{where} ORDER BY {quote(PRIMARY_KEY)}"
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return Statement(sql, params)


def select_children(meta: TypeMetadata, foreign_key: str, parent_id: int) -> Statement:
    """Rows of a related table whose foreign key column holds `parent_id`."""
    return Statement(
        f"SELECT * FROM {quote(meta.table_name)} WHERE {quote(foreign_key)} = ? "
        f"ORDER BY {quote(PRIMARY_KEY)}",
        (parent_id,),
    )


def select_where_literal(meta: TypeMetadata, predicate: str, args: Sequence[Any]) -> Statement:
    """Selection by a caller-written predicate with positional `?` bindings.

    Raises:
        ConfigurationError: Placeholder count differs from argument count.
    """
    expected = count_placeholders(predicate)
    if expected != len(args):
        raise ConfigurationError.placeholder_mismatch(predicate, expected, len(args))
    return Statement(
        f"SELECT * FROM {quote(meta.table_name)} WHERE {predicate}",
        tuple(to_storage(a) for a in args),
    )


def insert(meta: TypeMetadata, values: Mapping[str, Any]) -> Statement:
    """INSERT of every registered column; `values` is keyed by field name."""
    if not meta.fields:
        return Statement(f"INSERT INTO {quote(meta.table_name)} DEFAULT VALUES")
    columns = ", ".join(quote(f.column_name) for f in meta.fields)
    placeholders = ", ".join("?" for _ in meta.fields)
    return Statement(
        f"INSERT INTO {quote(meta.table_name)} ({columns}) VALUES ({placeholders})",
        tuple(to_storage(values[f.field_name]) for f in meta.fields),
    )


def update(meta: TypeMetadata, id: int, values: Mapping[str, Any]) -> Statement:
    """UPDATE of every registered column keyed by id."""
    assignments = ", ".join(f"{quote(f.column_name)} = ?" for f in meta.fields)
    return Statement(
        f"UPDATE {quote(meta.table_name)} SET {assignments} WHERE {quote(PRIMARY_KEY)} = ?",
        (*(to_storage(values[f.field_name]) for f in meta.fields), id),
    )


def delete(meta: TypeMetadata, id: int) -> Statement:
    return Statement(
        f"DELETE FROM {quote(meta.table_name)} WHERE {quote(PRIMARY_KEY)} = ?",
        (id,),
    )


def create_table(meta: TypeMetadata, model: str) -> Statement:
    """CREATE TABLE IF NOT EXISTS with one NOT NULL column per field.

    Raises:
        ConfigurationError: The model has no fields, or a field has no type.
    """
    if not meta.fields:
        raise ConfigurationError.missing_metadata(model)
    columns = [f"{quote(PRIMARY_KEY)} INTEGER PRIMARY KEY AUTOINCREMENT"]
    for f in meta.fields:
        if f.field_type is None:
            raise ConfigurationError.missing_field_type(model, f.field_name)
        columns.append(f"{quote(f.column_name)} {column_affinity(f.field_type)} NOT NULL")
    return Statement(f"CREATE TABLE IF NOT EXISTS {quote(meta.table_name)} ({', '.join(columns)})")


def drop_table(meta: TypeMetadata) -> Statement:
    return Statement(f"DROP TABLE IF EXISTS {quote(meta.table_name)}")
