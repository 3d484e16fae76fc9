"""
Pydantic configuration models for BidBase.

These models provide type-safe configuration with validation for:
- Database and logging settings
- OCDS feed access and retry policy
- Sync run defaults
- HTTP API settings
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = Field(
        default="sqlite:///data/bidbase.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        default=False,
        description="Echo SQL statements (debugging)",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Connection pool size",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=Path("logs/bidbase.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        """Reject unknown log levels early."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Feed Configuration
# =============================================================================


class RetryPolicyConfig(BaseModel):
    """Backoff policy for transient feed failures."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per page fetch",
    )
    min_wait: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum wait between attempts in seconds",
    )
    max_wait: float = Field(
        default=30.0,
        ge=0.0,
        description="Maximum wait between attempts in seconds",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier",
    )
    jitter: bool = Field(
        default=True,
        description="Randomize wait times",
    )


class FeedConfig(BaseModel):
    """OCDS release feed settings."""

    base_url: str = Field(
        default="https://api.etenders.gov.za/v1",
        description="Feed base URL",
    )
    releases_path: str = Field(
        default="releases",
        description="Path of the paginated release list endpoint",
    )
    api_key: str | None = Field(
        default=None,
        description="Bearer credential (optional)",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    user_agent: str = Field(
        default="BidBase-Sync/1.0",
        description="User-Agent header sent to the feed",
    )
    retry: RetryPolicyConfig = Field(default_factory=RetryPolicyConfig)

    @field_validator("api_key")
    @classmethod
    def blank_key_is_none(cls, v: str | None) -> str | None:
        """Treat an empty credential (e.g. unset env var) as absent."""
        if v is not None and not v.strip():
            return None
        return v


# =============================================================================
# Sync Configuration
# =============================================================================


class SyncConfig(BaseModel):
    """Defaults for sync runs."""

    page_number: int = Field(
        default=1,
        ge=1,
        description="First page to fetch",
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Releases requested per page",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Records reconciled concurrently within a page",
    )
    error_sample_limit: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Error messages kept in a run summary",
    )


# =============================================================================
# API Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """HTTP API settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
    )


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    config_dir: Path = Field(
        default=Path("configs"),
        description="Configuration directory",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Data storage directory",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.config_dir, self.data_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
