"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides the sample models and databases shared by the test suite.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import sys
import tempfile
from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local basie package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from basie import Database, Model, bind, children, field  # noqa: E402


class Status(enum.Enum):
    OPEN = "open"
    DONE = "done"


class User(Model):
    __tablename__ = "users"

    name = field(str)
    age = field(int)
    posts = children("Post", foreign_key="user_id")


class Post(Model):
    __tablename__ = "posts"

    title = field(str)
    user_id = field(int)
    comments = children(lambda: Comment)


class Comment(Model):
    __tablename__ = "comments"

    body = field(str)
    post_id = field(int)


class Category(Model):
    __tablename__ = "categories"

    name = field(str)
    parent_id = field(int)
    subcategories = children("Category", foreign_key="parent_id")


class Task(Model):
    __tablename__ = "tasks"

    title = field(str, column="task_title")
    status = field(Status)
    done = field(bool)
    due = field(dt.date)


SAMPLE_MODELS: list[type[Model]] = [User, Post, Comment, Category, Task]


@pytest.fixture
def models() -> SimpleNamespace:
    """The sample models, addressable as models.User etc."""
    return SimpleNamespace(
        User=User, Post=Post, Comment=Comment, Category=Category, Task=Task, Status=Status
    )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def database(temp_dir: Path) -> Generator[Database, None, None]:
    """File-backed SQLite database bound as the default executor."""
    db = Database(f"sqlite:///{temp_dir / 'test.db'}")
    bind(db)
    yield db
    bind(None)
    db.close()


@pytest.fixture
def tables(database: Database) -> Database:
    """Database with the tables of every sample model created."""

    async def create_all() -> None:
        for model in SAMPLE_MODELS:
            await model.create_table()

    asyncio.run(create_all())
    return database


class RecordingExecutor:
    """Executor that records statements and answers from a callback."""

    def __init__(self, responder: Callable[[str, tuple[Any, ...]], list[dict[str, Any]]] | None = None):
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._responder = responder
        self._next_id = 0

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        self.calls.append((sql, tuple(params)))
        if self._responder is None:
            return []
        return self._responder(sql, tuple(params))

    async def execute_insert(self, sql: str, params: Sequence[Any] = ()) -> int:
        self.calls.append((sql, tuple(params)))
        self._next_id += 1
        return self._next_id

    async def execute_ddl(self, sql: str) -> None:
        self.calls.append((sql, ()))


@pytest.fixture
def recorder() -> Generator[RecordingExecutor, None, None]:
    """RecordingExecutor bound as the default executor, returning no rows."""
    executor = RecordingExecutor()
    bind(executor)
    yield executor
    bind(None)


@pytest.fixture
def make_recorder() -> Generator[Callable[..., RecordingExecutor], None, None]:
    """Factory binding a RecordingExecutor with a custom responder."""

    def factory(
        responder: Callable[[str, tuple[Any, ...]], list[dict[str, Any]]] | None = None,
    ) -> RecordingExecutor:
        executor = RecordingExecutor(responder)
        bind(executor)
        return executor

    yield factory
    bind(None)
