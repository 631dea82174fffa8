"""Basie error types with typed error codes.

Error code ranges:
- 2xxx: Configuration
- 3xxx: Validation
- 4xxx: State
- 5xxx: Execution
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Configuration (2xxx)
    CONFIG_UNKNOWN_FIELD = 2001
    CONFIG_DUPLICATE_COLUMN = 2002
    CONFIG_DUPLICATE_FIELD = 2003
    CONFIG_RESERVED_NAME = 2004
    CONFIG_MISSING_METADATA = 2005
    CONFIG_MISSING_FIELD_TYPE = 2006
    CONFIG_UNRESOLVED_TYPE = 2007
    CONFIG_AMBIGUOUS_TYPE = 2008
    CONFIG_MISSING_COLUMN = 2009
    CONFIG_PLACEHOLDER_MISMATCH = 2010
    CONFIG_DEPTH_EXCEEDED = 2011
    CONFIG_NO_EXECUTOR = 2012
    CONFIG_INVALID_VALUE = 2013
    CONFIG_PARSE_ERROR = 2014

    # Validation (3xxx)
    VALIDATION_MISSING_VALUE = 3001

    # State (4xxx)
    STATE_USED_AFTER_DESTROY = 4001

    # Execution (5xxx)
    EXECUTION_FAILED = 5001


@dataclass(frozen=True)
class BasieError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_UNKNOWN_FIELD')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigurationError(BasieError):
    """Model declarations, criteria or settings that cannot be honored.

    Always raised before any statement reaches the store.
    """

    @classmethod
    def unknown_field(cls, model: str, name: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_UNKNOWN_FIELD,
            message=f"{model} has no registered field '{name}'",
            details={"model": model, "field": name},
        )

    @classmethod
    def duplicate_column(cls, model: str, column: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_DUPLICATE_COLUMN,
            message=f"Column '{column}' is declared twice on {model}",
            details={"model": model, "column": column},
        )

    @classmethod
    def duplicate_field(cls, model: str, name: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_DUPLICATE_FIELD,
            message=f"Field '{name}' is declared twice on {model}",
            details={"model": model, "field": name},
        )

    @classmethod
    def reserved_name(cls, model: str, name: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_RESERVED_NAME,
            message=f"'{name}' is reserved for the primary key and cannot be declared on {model}",
            details={"model": model, "name": name},
        )

    @classmethod
    def missing_metadata(cls, model: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_METADATA,
            message=f"{model} has no registered fields",
            details={"model": model},
        )

    @classmethod
    def missing_field_type(cls, model: str, name: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_FIELD_TYPE,
            message=f"Field '{name}' on {model} has no field_type; cannot derive a column type",
            details={"model": model, "field": name},
        )

    @classmethod
    def unresolved_type(cls, name: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_UNRESOLVED_TYPE,
            message=f"No mapped model named '{name}'",
            details={"name": name},
        )

    @classmethod
    def ambiguous_type(cls, name: str, candidates: list[str]) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_AMBIGUOUS_TYPE,
            message=f"Model name '{name}' matches several mapped models",
            details={"name": name, "candidates": candidates},
        )

    @classmethod
    def missing_column(cls, table: str, column: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_MISSING_COLUMN,
            message=f"Row from '{table}' has no column '{column}'",
            details={"table": table, "column": column},
        )

    @classmethod
    def placeholder_mismatch(cls, predicate: str, expected: int, got: int) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_PLACEHOLDER_MISMATCH,
            message=f"Predicate has {expected} placeholder(s) but {got} argument(s) were given",
            details={"predicate": predicate, "expected": expected, "got": got},
        )

    @classmethod
    def depth_exceeded(cls, model: str, max_depth: int) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_DEPTH_EXCEEDED,
            message=f"Relationship nesting below {model} exceeds max_depth={max_depth}",
            details={"model": model, "max_depth": max_depth},
        )

    @classmethod
    def no_executor(cls, model: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_NO_EXECUTOR,
            message=f"No executor bound for {model}; call basie.connect() or basie.bind() first",
            details={"model": model},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigurationError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class ValidationError(BasieError):
    """Instance data that cannot be written."""

    @classmethod
    def missing_value(cls, model: str, name: str) -> "ValidationError":
        return cls(
            code=ErrorCode.VALIDATION_MISSING_VALUE,
            message=f"Field '{name}' on {model} is required but has no value",
            details={"model": model, "field": name},
        )


class StateError(BasieError):
    """Operation on an instance in a state that forbids it."""

    @classmethod
    def used_after_destroy(cls, model: str, operation: str) -> "StateError":
        return cls(
            code=ErrorCode.STATE_USED_AFTER_DESTROY,
            message=f"{model} instance used after destroy ({operation})",
            details={"model": model, "operation": operation},
        )


def _is_database_locked_error(error: BaseException) -> bool:
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


class ExecutionError(BasieError):
    """Failure reported by the execution engine.

    Never retried internally; `retryable` is a hint for the caller.
    """

    @classmethod
    def from_exception(cls, exc: BaseException, sql: str) -> "ExecutionError":
        orig = getattr(exc, "orig", None) or exc
        return cls(
            code=ErrorCode.EXECUTION_FAILED,
            message=str(orig),
            retryable=_is_database_locked_error(orig),
            details={"sql": sql, "exception": type(orig).__name__},
        )
