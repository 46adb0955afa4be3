"""Configuration loading and validation."""

from .models import (
    AppConfig,
    DetailFailurePolicy,
    GitHubConfig,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
)
from .loader import ConfigError, load_app_config, write_default_app_config

__all__ = [
    # Enums
    "DetailFailurePolicy",
    # Config models
    "AppConfig",
    "GitHubConfig",
    "SearchConfig",
    "ServerConfig",
    "LoggingConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "write_default_app_config",
]
