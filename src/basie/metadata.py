"""Per-model metadata registry.

Every mapped model owns one TypeMetadata record listing its column
bindings (FieldMetadata) and relationship bindings (ChildFieldMetadata).
Records are filled once, when the model class is created, and are
read-only afterwards.

Models declare bindings as class attributes:

    class User(Model):
        name = field(str)
        age = field(int, column="user_age")
        posts = children("Post", foreign_key="user_id")

`Model.__init_subclass__` turns those attributes into registry entries.
The functional API (`register_field`, `register_child`) is the same
path with the declaration step spelled out.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Union

from basie.core.errors import ConfigurationError
from basie.core.logging import get_logger

log = get_logger("basie.metadata")

PRIMARY_KEY = "id"

# A related model given directly, by class name, or by a zero-arg callable.
ForeignTypeRef = Union[type, str, Callable[[], type]]


@dataclass(frozen=True, slots=True)
class FieldMetadata:
    """One persisted scalar column."""

    column_name: str
    field_name: str
    field_type: Callable[..., Any] | None = None


@dataclass(frozen=True, slots=True)
class ChildFieldMetadata:
    """One one-to-many relationship.

    `foreign_key` is the column on the related table holding this model's
    id. None means the `<owner>_id` convention.
    """

    field_name: str
    foreign_type: ForeignTypeRef
    foreign_key: str | None = None


@dataclass(slots=True)
class TypeMetadata:
    """Everything the engine knows about one mapped model."""

    table_name: str
    default_foreign_key: str
    fields: list[FieldMetadata] = dataclass_field(default_factory=list)
    child_fields: list[ChildFieldMetadata] = dataclass_field(default_factory=list)

    def field_names(self) -> set[str]:
        return {f.field_name for f in self.fields} | {c.field_name for c in self.child_fields}

    def get_field(self, name: str) -> FieldMetadata | None:
        for f in self.fields:
            if f.field_name == name:
                return f
        return None

    def foreign_key_for(self, child: ChildFieldMetadata) -> str:
        return child.foreign_key or self.default_foreign_key


_registry: dict[type, TypeMetadata] = {}


def _type_name(cls: type) -> str:
    return cls.__name__


def declare_type(cls: type, table_name: str | None = None) -> TypeMetadata:
    """Start (or restart) the metadata record of `cls`.

    A class re-created under the same module and qualified name, as
    happens on module reload, replaces the earlier record.
    """
    for existing in list(_registry):
        if (
            existing is not cls
            and existing.__module__ == cls.__module__
            and existing.__qualname__ == cls.__qualname__
        ):
            del _registry[existing]

    name = _type_name(cls).lower()
    meta = TypeMetadata(table_name=table_name or name, default_foreign_key=f"{name}_id")
    _registry[cls] = meta
    return meta


def _record(cls: type) -> TypeMetadata:
    meta = _registry.get(cls)
    if meta is None:
        meta = declare_type(cls)
    return meta


def _check_name(cls: type, meta: TypeMetadata, field_name: str) -> None:
    if field_name == PRIMARY_KEY:
        raise ConfigurationError.reserved_name(_type_name(cls), field_name)
    if field_name in meta.field_names():
        raise ConfigurationError.duplicate_field(_type_name(cls), field_name)


def _declares(cls: type, name: str, kind: type) -> bool:
    return any(isinstance(vars(klass).get(name), kind) for klass in cls.__mro__)


def _install(cls: type, name: str, descriptor: Field | Children) -> None:
    # Functional registration gets the same attribute a declaration would
    descriptor.__set_name__(cls, name)
    setattr(cls, name, descriptor)


def register_field(
    cls: type,
    column_name: str,
    field_name: str,
    field_type: Callable[..., Any] | None = None,
) -> FieldMetadata:
    """Append a column binding to the record of `cls`."""
    meta = _record(cls)
    _check_name(cls, meta, field_name)
    if column_name == PRIMARY_KEY:
        raise ConfigurationError.reserved_name(_type_name(cls), column_name)
    if any(f.column_name == column_name for f in meta.fields):
        raise ConfigurationError.duplicate_column(_type_name(cls), column_name)

    entry = FieldMetadata(column_name=column_name, field_name=field_name, field_type=field_type)
    meta.fields.append(entry)
    if not _declares(cls, field_name, Field):
        _install(cls, field_name, Field(field_type, column_name))
    return entry


def register_child(
    cls: type,
    field_name: str,
    foreign_type: ForeignTypeRef,
    foreign_key: str | None = None,
) -> ChildFieldMetadata:
    """Append a relationship binding to the record of `cls`."""
    meta = _record(cls)
    _check_name(cls, meta, field_name)

    entry = ChildFieldMetadata(
        field_name=field_name, foreign_type=foreign_type, foreign_key=foreign_key
    )
    meta.child_fields.append(entry)
    if not _declares(cls, field_name, Children):
        _install(cls, field_name, Children(foreign_type, foreign_key))
    return entry


def get_metadata(cls: type) -> TypeMetadata:
    """Return the record of `cls`; an empty one if it was never declared."""
    meta = _registry.get(cls)
    if meta is None:
        name = _type_name(cls).lower()
        return TypeMetadata(table_name=name, default_foreign_key=f"{name}_id")
    return meta


def is_registered(cls: type) -> bool:
    return cls in _registry


def registered_types() -> list[type]:
    return list(_registry)


def unregister(cls: type) -> None:
    _registry.pop(cls, None)


def resolve_type(ref: ForeignTypeRef) -> type:
    """Resolve a foreign type reference to a registered model class.

    Strings match the class name, or `module.Name` for disambiguation.
    """
    if isinstance(ref, type):
        return ref
    if isinstance(ref, str):
        if "." in ref:
            module, _, name = ref.rpartition(".")
            matches = [t for t in _registry if t.__module__ == module and t.__name__ == name]
        else:
            matches = [t for t in _registry if t.__name__ == ref]
        if not matches:
            raise ConfigurationError.unresolved_type(ref)
        if len(matches) > 1:
            raise ConfigurationError.ambiguous_type(
                ref, [f"{t.__module__}.{t.__qualname__}" for t in matches]
            )
        return matches[0]
    resolved = ref()
    if not isinstance(resolved, type):
        raise ConfigurationError.unresolved_type(repr(resolved))
    return resolved


class Field:
    """Class attribute declaring a persisted column.

    Reads and writes go to the instance's property bag and are refused on
    destroyed instances.
    """

    def __init__(self, field_type: Callable[..., Any] | None = None, column: str | None = None):
        self.field_type = field_type
        self.column = column
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @property
    def column_name(self) -> str:
        return self.column or self.name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        instance._ensure_usable(f"read {self.name}")
        return instance._props.get(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance._ensure_usable(f"write {self.name}")
        instance._props[self.name] = value

    def __repr__(self) -> str:
        return f"field({getattr(self.field_type, '__name__', None)!s}, column={self.column_name!r})"


class Children:
    """Class attribute declaring a one-to-many relationship."""

    def __init__(self, foreign_type: ForeignTypeRef, foreign_key: str | None = None):
        self.foreign_type = foreign_type
        self.foreign_key = foreign_key
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        instance._ensure_usable(f"read {self.name}")
        return instance._props.setdefault(self.name, [])

    def __set__(self, instance: Any, value: Any) -> None:
        instance._ensure_usable(f"write {self.name}")
        instance._props[self.name] = list(value)

    def __repr__(self) -> str:
        return f"children({self.foreign_type!r}, foreign_key={self.foreign_key!r})"


def field(field_type: Callable[..., Any] | None = None, *, column: str | None = None) -> Any:
    """Declare a persisted column.

    Args:
        field_type: Constructor applied to stored values on load (and used
            to pick the column type for create_table).
        column: Column name; defaults to the attribute name.
    """
    return Field(field_type, column)


def children(foreign_type: ForeignTypeRef, *, foreign_key: str | None = None) -> Any:
    """Declare a one-to-many relationship.

    Args:
        foreign_type: Related model, its class name, or a callable returning it.
        foreign_key: Column on the related table holding this model's id.
    """
    return Children(foreign_type, foreign_key)


def collect_declarations(cls: type) -> TypeMetadata:
    """Register every Field and Children attribute visible on `cls`.

    Declarations from base classes come first, in MRO order; a subclass
    attribute overrides the base attribute with the same name.
    """
    meta = declare_type(cls, vars(cls).get("__tablename__"))

    declared: dict[str, Field | Children] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, (Field, Children)):
                declared[name] = value
            elif name in declared:
                del declared[name]

    try:
        for name, value in declared.items():
            if isinstance(value, Field):
                register_field(cls, value.column or name, name, value.field_type)
            else:
                register_child(cls, name, value.foreign_type, value.foreign_key)
    except ConfigurationError:
        unregister(cls)
        raise

    log.debug(
        "model_registered",
        model=_type_name(cls),
        table=meta.table_name,
        fields=len(meta.fields),
        children=len(meta.child_fields),
    )
    return meta
