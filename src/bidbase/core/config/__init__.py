"""Configuration loading and validation."""

from .models import (
    AppConfig,
    ApiConfig,
    DatabaseConfig,
    FeedConfig,
    LoggingConfig,
    RetryPolicyConfig,
    SyncConfig,
)
from .loader import ConfigError, load_app_config, validate_app_config_file

__all__ = [
    # Config models
    "AppConfig",
    "ApiConfig",
    "DatabaseConfig",
    "FeedConfig",
    "LoggingConfig",
    "RetryPolicyConfig",
    "SyncConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_app_config_file",
]
