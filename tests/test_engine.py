"""Unit tests for engine.py.

Tests cover:
- Engine creation with correct pragmas
- execute/execute_insert/execute_ddl against SQLite
- Driver failures surfaced as ExecutionError
- Default executor binding
"""

from __future__ import annotations

from pathlib import Path

import pytest

from basie.config.models import DatabaseConfig
from basie.core.errors import ConfigurationError, ErrorCode, ExecutionError
from basie.engine import Database, Executor, bind, connect, disconnect, get_executor


class TestDatabaseEngine:
    """Tests for Database engine configuration."""

    @pytest.mark.asyncio
    async def test_file_database_uses_wal(self, database: Database) -> None:
        rows = await database.execute("PRAGMA journal_mode")
        assert list(rows[0].values()) == ["wal"]

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, database: Database) -> None:
        rows = await database.execute("PRAGMA foreign_keys")
        assert list(rows[0].values()) == [1]

    @pytest.mark.asyncio
    async def test_busy_timeout_from_config(self, temp_dir: Path) -> None:
        db = Database.from_config(
            DatabaseConfig(url=f"sqlite:///{temp_dir / 'cfg.db'}", busy_timeout_ms=1234)
        )
        try:
            rows = await db.execute("PRAGMA busy_timeout")
            assert list(rows[0].values()) == [1234]
        finally:
            db.close()

    @pytest.mark.asyncio
    async def test_memory_database_keeps_state_between_statements(self) -> None:
        db = Database("sqlite:///:memory:")
        try:
            await db.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
            await db.execute_insert("INSERT INTO t (v) VALUES (?)", ["a"])
            rows = await db.execute("SELECT v FROM t")
            assert rows == [{"v": "a"}]
        finally:
            db.close()

    def test_database_satisfies_executor_protocol(self, database: Database) -> None:
        assert isinstance(database, Executor)


class TestExecute:
    """Statement execution tests."""

    @pytest.mark.asyncio
    async def test_rows_returned_as_dicts(self, database: Database) -> None:
        await database.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT, n INTEGER)")
        await database.execute("INSERT INTO t (v, n) VALUES (?, ?)", ["x", 1])
        await database.execute("INSERT INTO t (v, n) VALUES (?, ?)", ["y", 2])

        rows = await database.execute("SELECT * FROM t ORDER BY id")

        assert rows == [{"id": 1, "v": "x", "n": 1}, {"id": 2, "v": "y", "n": 2}]

    @pytest.mark.asyncio
    async def test_non_query_returns_empty_list(self, database: Database) -> None:
        await database.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        assert await database.execute("INSERT INTO t (v) VALUES (?)", ["x"]) == []

    @pytest.mark.asyncio
    async def test_execute_insert_returns_generated_id(self, database: Database) -> None:
        await database.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT)")
        first = await database.execute_insert("INSERT INTO t (v) VALUES (?)", ["a"])
        second = await database.execute_insert("INSERT INTO t (v) VALUES (?)", ["b"])
        assert (first, second) == (1, 2)

    @pytest.mark.asyncio
    async def test_parameters_are_bound_not_interpolated(self, database: Database) -> None:
        await database.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        hostile = "x'); DROP TABLE t; --"
        await database.execute("INSERT INTO t (v) VALUES (?)", [hostile])

        rows = await database.execute("SELECT v FROM t")

        assert rows == [{"v": hostile}]

    @pytest.mark.asyncio
    async def test_malformed_sql_raises_execution_error(self, database: Database) -> None:
        with pytest.raises(ExecutionError) as exc_info:
            await database.execute("SELEKT nonsense")
        assert exc_info.value.code == ErrorCode.EXECUTION_FAILED
        assert exc_info.value.details["sql"] == "SELEKT nonsense"
        assert exc_info.value.__cause__ is not None
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_constraint_violation_raises_execution_error(self, database: Database) -> None:
        await database.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT NOT NULL)")
        with pytest.raises(ExecutionError):
            await database.execute("INSERT INTO t (v) VALUES (?)", [None])


class TestBinding:
    """Default executor binding tests."""

    def teardown_method(self) -> None:
        bind(None)

    def test_nothing_bound_raises(self) -> None:
        bind(None)
        with pytest.raises(ConfigurationError) as exc_info:
            get_executor()
        assert exc_info.value.code == ErrorCode.CONFIG_NO_EXECUTOR

    def test_bound_executor_returned(self, database: Database) -> None:
        assert get_executor() is database

    def test_model_override_wins(self, database: Database) -> None:
        other = Database("sqlite:///:memory:")
        try:

            class Owner:
                __executor__ = other

            assert get_executor(Owner) is other
            assert get_executor(type("NoOverride", (), {})) is database
        finally:
            other.close()

    def test_connect_binds_and_disconnect_unbinds(self, temp_dir: Path) -> None:
        db = connect(f"sqlite:///{temp_dir / 'c.db'}")
        assert get_executor() is db
        disconnect()
        with pytest.raises(ConfigurationError):
            get_executor()

    def test_connect_without_url_uses_config(
        self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        url = f"sqlite:///{temp_dir / 'from_env.db'}"
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv("BASIE__DATABASE__URL", url)

        db = connect()
        try:
            assert db.url == url
        finally:
            disconnect()
