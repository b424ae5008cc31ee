"""Config module exports."""

from stepwise.config.loader import load_config
from stepwise.config.models import (
    AdminConfig,
    DatabaseConfig,
    IndexConfig,
    LoggingConfig,
    RetrievalConfig,
    ServerConfig,
    SourceConfig,
    StepwiseConfig,
    VectorConfig,
)

__all__ = [
    "load_config",
    "StepwiseConfig",
    "AdminConfig",
    "DatabaseConfig",
    "IndexConfig",
    "LoggingConfig",
    "RetrievalConfig",
    "ServerConfig",
    "SourceConfig",
    "VectorConfig",
]
