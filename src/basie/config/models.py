"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (BASIE__SECTION__KEY)
3. Project YAML (basie.yaml)
4. Global YAML (~/.config/basie/config.yaml)
5. Built-in defaults (this file)

Examples:
    BASIE__LOGGING__LEVEL=DEBUG
    BASIE__DATABASE__URL=sqlite:////var/lib/app/app.db
    BASIE__MATERIALIZE__MAX_DEPTH=8
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        BASIE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every statement.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        BASIE__DATABASE__URL: SQLAlchemy URL of the SQLite database
        BASIE__DATABASE__ECHO: Echo SQL through SQLAlchemy's own logger
        BASIE__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        BASIE__DATABASE__FOREIGN_KEYS: Enforce FOREIGN KEY constraints
    """

    url: str = Field(
        default="sqlite:///basie.db",
        description="SQLAlchemy database URL. Only the sqlite dialect is supported.",
    )
    echo: bool = Field(default=False)
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )
    foreign_keys: bool = Field(default=True)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith("sqlite"):
            raise ValueError(f"Only sqlite URLs are supported, got {v}")
        return v

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got {v}")
        return v


class MaterializeConfig(BaseModel):
    """Relationship loading configuration.

    Env vars:
        BASIE__MATERIALIZE__MAX_DEPTH: Deepest relationship nesting loaded
        BASIE__MATERIALIZE__CONCURRENT_CHILDREN: Load sibling relationships concurrently
    """

    max_depth: int = Field(
        default=32,
        description="Maximum relationship nesting followed while materializing one row.",
    )
    concurrent_children: bool = Field(
        default=True,
        description="Issue the queries for sibling relationships concurrently.",
    )

    @field_validator("max_depth")
    @classmethod
    def validate_max_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_depth must be >= 1, got {v}")
        return v


class BasieConfig(BaseModel):
    """Root configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    materialize: MaterializeConfig = Field(default_factory=MaterializeConfig)
