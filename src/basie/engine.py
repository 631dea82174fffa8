"""Statement execution against SQLite.

This module provides:
- Executor: the protocol the mapping layer executes statements through
- Database: SQLAlchemy-backed SQLite executor
- connect/bind/get_executor: the process-wide default executor

Database runs blocking driver calls on a single worker thread, so all
statements issued by one Database are serialized in submission order
while callers await them. Each statement runs in its own transaction.
"""

from __future__ import annotations

import asyncio
import contextvars
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from basie.core.errors import ConfigurationError, ExecutionError
from basie.core.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from basie.config.models import DatabaseConfig

log = get_logger("basie.engine")

Row = dict[str, Any]


@runtime_checkable
class Executor(Protocol):
    """What the mapping layer needs from a store."""

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Run a statement and return its rows (empty for non-queries)."""
        ...

    async def execute_insert(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run an INSERT and return the generated row id."""
        ...

    async def execute_ddl(self, sql: str) -> None:
        """Run a schema statement."""
        ...


def _is_memory_url(url: str) -> bool:
    database = make_url(url).database
    return database in (None, "", ":memory:")


class Database:
    """SQLite executor over a SQLAlchemy engine."""

    def __init__(
        self,
        url: str = "sqlite:///basie.db",
        *,
        echo: bool = False,
        busy_timeout_ms: int = 30000,
        foreign_keys: bool = True,
    ) -> None:
        self.url = url
        self._busy_timeout_ms = busy_timeout_ms
        self._foreign_keys = foreign_keys
        self._memory = _is_memory_url(url)
        self.engine = self._create_engine(echo)
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="basie-db")

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> Database:
        return cls(
            config.url,
            echo=config.echo,
            busy_timeout_ms=config.busy_timeout_ms,
            foreign_keys=config.foreign_keys,
        )

    def _create_engine(self, echo: bool) -> Engine:
        kwargs: dict[str, Any] = {
            "connect_args": {"check_same_thread": False},
            "echo": echo,
        }
        if self._memory:
            # One shared connection, otherwise each checkout sees a fresh empty database
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        engine = create_engine(self.url, **kwargs)
        event.listen(engine, "connect", self._configure_pragmas)
        return engine

    def _configure_pragmas(self, dbapi_conn: Any, _connection_record: Any) -> None:
        cursor = dbapi_conn.cursor()
        if not self._memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
        cursor.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
        cursor.execute(f"PRAGMA foreign_keys={'ON' if self._foreign_keys else 'OFF'}")
        cursor.close()

    def _run(self, sql: str, params: Sequence[Any], want_id: bool) -> Any:
        started = time.perf_counter()
        try:
            with self.engine.begin() as conn:
                result = conn.exec_driver_sql(sql, tuple(params) if params else None)
                if want_id:
                    out: Any = int(result.lastrowid)
                    count = 1
                elif result.returns_rows:
                    out = [dict(row) for row in result.mappings()]
                    count = len(out)
                else:
                    out = []
                    count = result.rowcount
        except SQLAlchemyError as e:
            log.warning("statement_failed", sql=sql, params=len(params), error=str(e))
            raise ExecutionError.from_exception(e, sql) from e
        log.debug(
            "statement_executed",
            sql=sql,
            params=len(params),
            rows=count,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return out

    async def _submit(self, sql: str, params: Sequence[Any], want_id: bool) -> Any:
        loop = asyncio.get_running_loop()
        # Carry the operation id into the worker thread
        ctx = contextvars.copy_context()
        return await loop.run_in_executor(
            self._worker, ctx.run, self._run, sql, params, want_id
        )

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        result: list[Row] = await self._submit(sql, params, False)
        return result

    async def execute_insert(self, sql: str, params: Sequence[Any] = ()) -> int:
        result: int = await self._submit(sql, params, True)
        return result

    async def execute_ddl(self, sql: str) -> None:
        await self._submit(sql, (), False)

    def close(self) -> None:
        """Release the worker thread and pooled connections."""
        self._worker.shutdown(wait=True)
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"Database({self.url!r})"


_default_executor: Executor | None = None


def bind(executor: Executor | None) -> None:
    """Set (or clear, with None) the process-wide default executor."""
    global _default_executor
    _default_executor = executor


def get_executor(model: type | None = None) -> Executor:
    """Executor for `model`: its `__executor__` attribute, else the default.

    Raises:
        ConfigurationError: Nothing is bound.
    """
    executor = getattr(model, "__executor__", None) if model is not None else None
    if executor is None:
        executor = _default_executor
    if executor is None:
        raise ConfigurationError.no_executor(model.__name__ if model is not None else "model")
    return executor


def connect(url: str | None = None, **kwargs: Any) -> Database:
    """Open a Database and bind it as the default executor.

    Without a URL, load_config() supplies the database and materialize
    sections.
    """
    if url is None:
        from basie import materializer
        from basie.config.loader import load_config

        config = load_config()
        materializer.configure(config.materialize)
        database = Database.from_config(config.database)
    else:
        database = Database(url, **kwargs)
    bind(database)
    log.debug("database_connected", url=database.url)
    return database


def disconnect() -> None:
    """Close and unbind the default executor if it is a Database."""
    global _default_executor
    if isinstance(_default_executor, Database):
        _default_executor.close()
    _default_executor = None
