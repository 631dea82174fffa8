"""Core module exports."""

from basie.core.errors import (
    BasieError,
    ConfigurationError,
    ErrorCode,
    ExecutionError,
    StateError,
    ValidationError,
)
from basie.core.logging import (
    clear_operation_id,
    configure_logging,
    get_logger,
    get_operation_id,
    operation_scope,
    set_operation_id,
)

__all__ = [
    # Errors
    "BasieError",
    "ConfigurationError",
    "ErrorCode",
    "ExecutionError",
    "StateError",
    "ValidationError",
    # Logging
    "clear_operation_id",
    "configure_logging",
    "get_logger",
    "get_operation_id",
    "operation_scope",
    "set_operation_id",
]
