"""Configuration settings for database connections."""

from .settings import (
    ConfigError,
    ConnectionConstants,
    Settings,
    load_config,
)

__all__ = [
    "ConfigError",
    "ConnectionConstants",
    "Settings",
    "load_config",
]
