"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (STEPWISE__SECTION__KEY)
3. Working directory YAML (./stepwise.yaml)
4. Global YAML (~/.config/stepwise/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    STEPWISE__<SECTION>__<KEY>=<VALUE>

Examples:
    STEPWISE__LOGGING__LEVEL=DEBUG
    STEPWISE__SOURCE__TOKEN=ghp_...
    STEPWISE__INDEX__BATCH_SIZE=10
    STEPWISE__ADMIN__TOKEN=change-me
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from stepwise.config.constants import (
    CHUNK_MIN_WINDOW,
    REINDEX_BATCH_MAX_SIZE,
    RETRIEVAL_MAX_CHARS_HARD,
    WORKSHOP_FILTER_MAX_COUNT,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

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
        STEPWISE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(default="INFO", description="Root log level.")
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ServerConfig(BaseModel):
    """HTTP server configuration.

    Env vars:
        STEPWISE__SERVER__HOST: Bind address (default: 127.0.0.1)
        STEPWISE__SERVER__PORT: Port number (default: 7655)
    """

    host: str = Field(
        default="127.0.0.1",
        description="Bind address. Use 0.0.0.0 for network access.",
    )
    port: int = Field(default=7655, description="Server port.")

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not (0 <= v <= 65535):
            raise ValueError(f"Port must be 0-65535, got {v}")
        return v


class DatabaseConfig(BaseModel):
    """Relational store configuration.

    Env vars:
        STEPWISE__DATABASE__PATH: SQLite database file
        STEPWISE__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
    """

    path: str = Field(
        default="~/.local/share/stepwise/index.db",
        description="SQLite database file holding the workshop index.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long to wait for locks.",
    )
    max_retries: int = Field(
        default=3,
        description="Max retry attempts for locked database errors.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class RetryConfig(BaseModel):
    """Source host retry policy.

    Env vars:
        STEPWISE__SOURCE__RETRY__MAX_ATTEMPTS: Attempts before giving up
        STEPWISE__SOURCE__RETRY__BASE_DELAY_SEC: First backoff delay
        STEPWISE__SOURCE__RETRY__MAX_DELAY_SEC: Ceiling for any single delay
    """

    max_attempts: int = Field(default=4, ge=1)
    base_delay_sec: float = Field(default=1.0, ge=0)
    max_delay_sec: float = Field(default=30.0, ge=0)


class SourceConfig(BaseModel):
    """Source host (GitHub) configuration.

    Env vars:
        STEPWISE__SOURCE__TOKEN: API token; raises the primary rate limit
        STEPWISE__SOURCE__ORG: Organization whose workshops are indexed
    """

    api_url: str = Field(default="https://api.github.com")
    token: str | None = Field(
        default=None,
        description="GitHub token. Without one the unauthenticated rate limit applies.",
    )
    org: str = Field(default="epicweb-dev")
    topic: str = Field(default="workshop")
    search_page_size: int = Field(default=100, ge=1, le=100)
    search_max_pages: int = Field(default=9, ge=1)
    timeout_sec: float = Field(default=30.0, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("token")
    @classmethod
    def strip_token(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class IndexConfig(BaseModel):
    """Indexing configuration.

    Env vars:
        STEPWISE__INDEX__BATCH_SIZE: Repositories per reindex invocation
        STEPWISE__INDEX__CHUNK_SIZE: Target chunk length (characters)
        STEPWISE__INDEX__CHUNK_OVERLAP: Overlap between consecutive chunks
    """

    batch_size: int = Field(default=5, ge=1, le=REINDEX_BATCH_MAX_SIZE)
    chunk_size: int = Field(default=1600, ge=CHUNK_MIN_WINDOW)
    chunk_overlap: int = Field(default=180, ge=0)
    write_batch_size: int = Field(
        default=100,
        ge=1,
        description="Rows per insert statement batch.",
    )
    vector_delete_batch_size: int = Field(default=100, ge=1)
    max_load_iterations: int = Field(
        default=500,
        ge=1,
        description="Cursor resubmissions the CLI load loop allows before aborting.",
    )

    @model_validator(mode="after")
    def check_overlap(self) -> "IndexConfig":
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        return self


class RetrievalConfig(BaseModel):
    """Retrieval defaults.

    Env vars:
        STEPWISE__RETRIEVAL__MAX_CHARS_DEFAULT: Budget when callers send none
    """

    max_chars_default: int = Field(default=50_000, ge=1, le=RETRIEVAL_MAX_CHARS_HARD)
    list_limit_default: int = Field(default=20, ge=1)
    search_limit_default: int = Field(default=8, ge=1)


class VectorConfig(BaseModel):
    """Embedding provider and vector index configuration.

    Env vars:
        STEPWISE__VECTORS__ENABLED: Turn vector search on or off
        STEPWISE__VECTORS__MODEL: fastembed model name
    """

    enabled: bool = Field(default=True)
    model: str = Field(default="BAAI/bge-small-en-v1.5")
    path: str = Field(
        default="~/.local/share/stepwise/vectors",
        description="Directory for the persisted vector index.",
    )

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


class AdminConfig(BaseModel):
    """Administrative reindex endpoint.

    Env vars:
        STEPWISE__ADMIN__TOKEN: Bearer token required by the reindex endpoint
    """

    token: str | None = Field(
        default=None,
        description="Unset disables manual reindexing over HTTP.",
    )
    max_body_chars: int = Field(default=50_000, ge=1)
    max_workshops: int = Field(default=WORKSHOP_FILTER_MAX_COUNT, ge=1)


class StepwiseConfig(BaseModel):
    """Root configuration for Stepwise.

    All settings can be configured via:
    1. Environment variables: STEPWISE__SECTION__KEY
    2. YAML config files (working directory or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    source: SourceConfig = Field(default_factory=SourceConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    vectors: VectorConfig = Field(default_factory=VectorConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)
