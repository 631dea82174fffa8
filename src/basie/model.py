"""Mapped model base class.

Subclassing Model declares a mapped type: its Field and Children class
attributes are registered when the class is created, and the class gains
the async query surface (find, first, all, find_by, where, materialize,
create_table, drop_table). Instances carry an id and a lifecycle state:

    TRANSIENT --save()--> PERSISTED --destroy()--> POISONED
        \\________________destroy()_______________/

A poisoned instance refuses every field access and operation with
StateError; only `is_poisoned`, `state` and `repr()` keep working.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, ClassVar, TypeVar

from basie import materializer, statements
from basie.core.errors import StateError, ValidationError
from basie.core.logging import get_logger, operation_scope
from basie.engine import Executor, get_executor
from basie.metadata import collect_declarations, get_metadata

log = get_logger("basie.model")

M = TypeVar("M", bound="Model")


class LifecycleState(Enum):
    TRANSIENT = "transient"
    PERSISTED = "persisted"
    POISONED = "poisoned"


class Model:
    """Base class of every mapped type.

    Class attributes:
        __tablename__: Table name; defaults to the lower-cased class name.
        __abstract__: When true on a class, that class is not mapped.
        __executor__: Executor used instead of the bound default.
    """

    __abstract__: ClassVar[bool] = True
    __tablename__: ClassVar[str | None] = None
    __executor__: ClassVar[Executor | None] = None

    _props: dict[str, Any]
    _id: int | None
    _state: LifecycleState

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if vars(cls).get("__abstract__", False):
            return
        collect_declarations(cls)

    def __init__(self, **values: Any) -> None:
        self._props = {}
        self._id = None
        self._state = LifecycleState.TRANSIENT

        names = get_metadata(type(self)).field_names()
        for name, value in values.items():
            if name not in names:
                raise TypeError(
                    f"{type(self).__name__}() got an unexpected keyword argument '{name}'"
                )
            setattr(self, name, value)

    @classmethod
    def _allocate(cls: type[M], id: int, props: dict[str, Any]) -> M:
        # Bypasses __init__: materialized instances are built from stored data only
        instance = object.__new__(cls)
        instance._props = props
        instance._id = id
        instance._state = LifecycleState.TRANSIENT
        return instance

    def _mark_persisted(self) -> None:
        self._state = LifecycleState.PERSISTED

    def _ensure_usable(self, operation: str) -> None:
        if self._state is LifecycleState.POISONED:
            raise StateError.used_after_destroy(type(self).__name__, operation)

    def __setattr__(self, name: str, value: Any) -> None:
        # Declared fields check through their descriptors; this covers the rest
        if not name.startswith("_") and getattr(self, "_state", None) is LifecycleState.POISONED:
            raise StateError.used_after_destroy(type(self).__name__, f"write {name}")
        super().__setattr__(name, value)

    # === Instance surface ===

    @property
    def id(self) -> int | None:
        """Primary key; None until the first successful save()."""
        self._ensure_usable("read id")
        return self._id

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_poisoned(self) -> bool:
        return self._state is LifecycleState.POISONED

    async def save(self) -> None:
        """Insert the instance if it is new, update it otherwise.

        `id` is set after the first successful save and never changes.

        Raises:
            StateError: The instance was destroyed.
            ValidationError: A registered field holds None.
            ExecutionError: The store rejected the statement.
        """
        self._ensure_usable("save")
        cls = type(self)
        meta = get_metadata(cls)
        for f in meta.fields:
            if self._props.get(f.field_name) is None:
                raise ValidationError.missing_value(cls.__name__, f.field_name)

        executor = get_executor(cls)
        with operation_scope():
            if self._state is LifecycleState.TRANSIENT:
                stmt = statements.insert(meta, self._props)
                self._id = await executor.execute_insert(stmt.sql, stmt.params)
                self._state = LifecycleState.PERSISTED
                log.debug("instance_saved", model=cls.__name__, id=self._id, action="insert")
            elif meta.fields:
                assert self._id is not None
                stmt = statements.update(meta, self._id, self._props)
                await executor.execute(stmt.sql, stmt.params)
                log.debug("instance_saved", model=cls.__name__, id=self._id, action="update")

    async def destroy(self) -> None:
        """Delete the row if there is one, then poison the instance.

        Destroying an already destroyed instance does nothing.
        """
        if self._state is LifecycleState.POISONED:
            return
        cls = type(self)
        if self._state is LifecycleState.PERSISTED:
            assert self._id is not None
            stmt = statements.delete(get_metadata(cls), self._id)
            with operation_scope():
                await get_executor(cls).execute(stmt.sql, stmt.params)
        self._state = LifecycleState.POISONED
        log.debug("instance_destroyed", model=cls.__name__, id=self._id)

    def to_dict(self) -> dict[str, Any]:
        """Id and scalar field values."""
        self._ensure_usable("to_dict")
        result: dict[str, Any] = {"id": self._id}
        for f in get_metadata(type(self)).fields:
            result[f.field_name] = self._props.get(f.field_name)
        return result

    def __repr__(self) -> str:
        name = type(self).__name__
        if self._state is LifecycleState.POISONED:
            return f"<{name} id={self._id} destroyed>"
        fields = " ".join(
            f"{f.field_name}={self._props.get(f.field_name)!r}"
            for f in get_metadata(type(self)).fields
        )
        return f"<{name} id={self._id} {fields}>" if fields else f"<{name} id={self._id}>"

    # === Class surface ===

    @classmethod
    async def materialize(cls: type[M], row: Mapping[str, Any]) -> M:
        """Build a persisted instance from a raw row, loading its relationships."""
        with operation_scope():
            return await materializer.materialize(cls, row)  # type: ignore[return-value]

    @classmethod
    async def create_table(cls) -> None:
        """Create the table unless it exists.

        Raises:
            ConfigurationError: No fields are registered, or one lacks a type.
        """
        meta = get_metadata(cls)
        stmt = statements.create_table(meta, cls.__name__)
        with operation_scope():
            await get_executor(cls).execute_ddl(stmt.sql)
        log.info("table_created", model=cls.__name__, table=meta.table_name)

    @classmethod
    async def drop_table(cls) -> None:
        """Drop the table if it exists."""
        meta = get_metadata(cls)
        stmt = statements.drop_table(meta)
        with operation_scope():
            await get_executor(cls).execute_ddl(stmt.sql)
        log.info("table_dropped", model=cls.__name__, table=meta.table_name)

    @classmethod
    async def _fetch(cls: type[M], stmt: statements.Statement) -> list[M]:
        with operation_scope():
            return await materializer.fetch(cls, stmt)  # type: ignore[return-value]

    @classmethod
    async def find(cls: type[M], id: int) -> M | None:
        """Instance with the given id, or None."""
        found = await cls._fetch(statements.select_by_id(get_metadata(cls), id))
        return found[0] if found else None

    @classmethod
    async def first(cls: type[M]) -> M | None:
        """Instance with the lowest id, or None when the table is empty."""
        found = await cls._fetch(statements.select_first(get_metadata(cls)))
        return found[0] if found else None

    @classmethod
    async def all(cls: type[M]) -> list[M]:
        return await cls._fetch(statements.select_all(get_metadata(cls)))

    @classmethod
    async def find_by(
        cls: type[M], criteria: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> M | None:
        """First instance whose fields equal every given value, or None.

        Values are compared with `=`, so `%` and `_` in strings match
        themselves, never as wildcards.

            await User.find_by({"age": 20, "name": "John"})
            await User.find_by(name="John%")  # the literal name "John%"
        """
        merged = {**(criteria or {}), **kwargs}
        stmt = statements.select_where(get_metadata(cls), cls.__name__, merged, limit=1)
        found = await cls._fetch(stmt)
        return found[0] if found else None

    @classmethod
    async def where(
        cls: type[M],
        criteria: Mapping[str, Any] | str | None = None,
        /,
        *args: Any,
        **kwargs: Any,
    ) -> list[M]:
        """All matching instances.

        With a mapping (or keyword arguments), matches like find_by. With
        a string, the string is a literal WHERE clause whose `?`
        placeholders are bound to the remaining positional arguments:

            await User.where({"age": 20})
            await User.where("name LIKE ? AND age = 20", f"%{term}%")
        """
        meta = get_metadata(cls)
        if isinstance(criteria, str):
            if kwargs:
                raise TypeError("where() with a literal predicate takes no keyword criteria")
            stmt = statements.select_where_literal(meta, criteria, args)
        else:
            if args:
                raise TypeError("where() with criteria takes no positional arguments")
            merged = {**(criteria or {}), **kwargs}
            stmt = statements.select_where(meta, cls.__name__, merged)
        return await cls._fetch(stmt)
