"""
Configuration Module

YAML and environment based configuration for the score pipeline
"""

from .config_manager import (
    Config,
    CacheSettings,
    ValidationSettings,
    StorageSettings,
    LoggingConfig,
    ConfigManager,
    load_config
)

__all__ = [
    "Config",
    "CacheSettings",
    "ValidationSettings",
    "StorageSettings",
    "LoggingConfig",
    "ConfigManager",
    "load_config"
]
