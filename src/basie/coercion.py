"""Conversion between Python field values and SQLite storage scalars."""

from __future__ import annotations

import datetime as dt
import enum
from collections.abc import Callable
from typing import Any

_AFFINITY: dict[Any, str] = {
    bool: "INTEGER",
    int: "INTEGER",
    float: "REAL",
    str: "TEXT",
    bytes: "BLOB",
    dt.datetime: "TEXT",
    dt.date: "TEXT",
}


def _enum_affinity(enum_type: type[enum.Enum]) -> str:
    value_types = {type(m.value) for m in enum_type}
    if value_types and all(issubclass(t, int) for t in value_types):
        return "INTEGER"
    if value_types and all(issubclass(t, (int, float)) for t in value_types):
        return "REAL"
    return "TEXT"


def column_affinity(field_type: Callable[..., Any]) -> str:
    """SQLite column type used by CREATE TABLE for a declared field type.

    Plain Enum types take the affinity of their member values.
    """
    if isinstance(field_type, type):
        for base in field_type.__mro__:
            if base in _AFFINITY:
                return _AFFINITY[base]
        if issubclass(field_type, enum.Enum):
            return _enum_affinity(field_type)
    return "TEXT"


def _enum_member(value: Any, enum_type: type[enum.Enum]) -> enum.Enum:
    try:
        return enum_type(value)
    except ValueError:
        # Stored under a different affinity than the member value, e.g. '2' for 2
        for member in enum_type:
            if str(member.value) == str(value):
                return member
        raise


def from_storage(value: Any, field_type: Callable[..., Any] | None) -> Any:
    """Coerce a stored scalar to the declared field type.

    None stays None. Values already of the declared type are returned as is.
    """
    if value is None or field_type is None:
        return value
    if isinstance(field_type, type) and isinstance(value, field_type):
        # bool is an int subclass; 0/1 read back as int must still convert
        if not (field_type is int and isinstance(value, bool)):
            return value
    if field_type is dt.datetime and isinstance(value, str):
        return dt.datetime.fromisoformat(value)
    if field_type is dt.date and isinstance(value, str):
        return dt.date.fromisoformat(value)
    if field_type is bool and isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(field_type, type) and issubclass(field_type, enum.Enum):
        return _enum_member(value, field_type)
    return field_type(value)


def to_storage(value: Any) -> Any:
    """Convert a field value to a scalar the SQLite driver binds natively."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    return value
