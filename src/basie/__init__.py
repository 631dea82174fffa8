"""Basie - async object-relational mapping for SQLite.

    import basie
    from basie import Model, children, field

    class User(Model):
        name = field(str)
        age = field(int)
        posts = children("Post")

    class Post(Model):
        title = field(str)
        user_id = field(int)

    basie.connect("sqlite:///app.db")
    await User.create_table()
    ann = User(name="Ann", age=30)
    await ann.save()
    await User.find_by(name="Ann")
"""

from basie.core.errors import (
    BasieError,
    ConfigurationError,
    ErrorCode,
    ExecutionError,
    StateError,
    ValidationError,
)
from basie.engine import Database, Executor, bind, connect, disconnect, get_executor
from basie.metadata import (
    ChildFieldMetadata,
    FieldMetadata,
    TypeMetadata,
    children,
    field,
    get_metadata,
    register_child,
    register_field,
)
from basie.model import LifecycleState, Model

__version__ = "0.1.0"

__all__ = [
    # Models
    "Model",
    "LifecycleState",
    "field",
    "children",
    # Metadata
    "FieldMetadata",
    "ChildFieldMetadata",
    "TypeMetadata",
    "get_metadata",
    "register_field",
    "register_child",
    # Execution
    "Executor",
    "Database",
    "bind",
    "connect",
    "disconnect",
    "get_executor",
    # Errors
    "BasieError",
    "ConfigurationError",
    "ErrorCode",
    "ExecutionError",
    "StateError",
    "ValidationError",
]
