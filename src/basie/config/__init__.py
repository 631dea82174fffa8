"""Config module exports."""

from basie.config.loader import load_config
from basie.config.models import (
    BasieConfig,
    DatabaseConfig,
    LoggingConfig,
    LogOutputConfig,
    MaterializeConfig,
)

__all__ = [
    "load_config",
    "BasieConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "MaterializeConfig",
]
