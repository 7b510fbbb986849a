"""Configuration Manager

This module provides centralized configuration management for the score
pipeline. It supports YAML configuration files, environment variable
overrides, and validation.
"""

import os
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

import yaml

from ..error_handling.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class CacheSettings:
    """Configuration for the validation cache"""
    ttl_ms: int = 300000  # 5 minutes
    max_cache_size: int = 1000
    cleanup_interval_ms: int = 300000
    cache_tag: str = "validation-cache"
    retry_attempts: int = 3
    retry_base_delay: float = 0.1  # seconds
    retry_max_delay: float = 5.0  # seconds


@dataclass
class ValidationSettings:
    """Configuration for score validation"""
    max_component_score: float = 100.0
    max_total_score: float = 1000.0
    percentage_decimals: int = 2


@dataclass
class StorageSettings:
    """Configuration for the durable storage provider"""
    backend: str = "memory"  # memory, redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    key_prefix: str = "scores:"


@dataclass
class LoggingConfig:
    """Configuration for logging"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = False
    file_path: str = "logs/score_pipeline.log"
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5


@dataclass
class Config:
    """Main configuration class"""
    cache: CacheSettings = field(default_factory=CacheSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    environment: str = "development"
    debug: bool = False


# Environment variable -> config path
ENV_MAPPINGS: Dict[str, List[str]] = {
    'ENVIRONMENT': ['environment'],
    'DEBUG': ['debug'],

    'SCORE_CACHE_TTL_MS': ['cache', 'ttl_ms'],
    'SCORE_CACHE_MAX_SIZE': ['cache', 'max_cache_size'],
    'SCORE_CACHE_CLEANUP_INTERVAL_MS': ['cache', 'cleanup_interval_ms'],
    'SCORE_CACHE_TAG': ['cache', 'cache_tag'],
    'SCORE_CACHE_RETRY_ATTEMPTS': ['cache', 'retry_attempts'],

    'SCORE_MAX_COMPONENT': ['validation', 'max_component_score'],
    'SCORE_MAX_TOTAL': ['validation', 'max_total_score'],
    'SCORE_PERCENTAGE_DECIMALS': ['validation', 'percentage_decimals'],

    'STORAGE_BACKEND': ['storage', 'backend'],
    'REDIS_HOST': ['storage', 'redis_host'],
    'REDIS_PORT': ['storage', 'redis_port'],
    'REDIS_DB': ['storage', 'redis_db'],
    'REDIS_PASSWORD': ['storage', 'redis_password'],
    'STORAGE_KEY_PREFIX': ['storage', 'key_prefix'],

    'LOG_LEVEL': ['logging', 'level'],
    'LOG_FILE_ENABLED': ['logging', 'file_enabled'],
    'LOG_FILE_PATH': ['logging', 'file_path'],
}

SUPPORTED_BACKENDS = ("memory", "redis")


class ConfigManager:
    """Manages application configuration from multiple sources"""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_file: Path to YAML configuration file
        """
        self.config_file = config_file
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file and environment variables

        Returns:
            Loaded configuration object

        Raises:
            ConfigurationError: If the merged configuration is invalid
        """
        config_dict = asdict(Config())

        if self.config_file and os.path.exists(self.config_file):
            try:
                with open(self.config_file, 'r') as f:
                    file_config = yaml.safe_load(f)
                if file_config:
                    config_dict = self._merge_configs(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_file}")
            except yaml.YAMLError as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")

        config_dict = self._apply_env_overrides(config_dict)

        self._config = self._create_config_object(config_dict)
        self._validate_config(self._config)

        logger.info(f"Configuration loaded for environment: {self._config.environment}")
        return self._config

    def get_config(self) -> Config:
        """Get the current configuration

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for env_var, config_path in ENV_MAPPINGS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config, config_path, self._convert_env_value(env_value))

        return config

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any):
        current = config
        for key in path[:-1]:
            current = current.setdefault(key, {})
        current[path[-1]] = value

    def _convert_env_value(self, value: str) -> Union[str, int, float, bool]:
        """Convert environment variable string to appropriate type"""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if '.' in value:
                return float(value)
            return int(value)
        except ValueError:
            return value

    def _create_config_object(self, config_dict: Dict[str, Any]) -> Config:
        try:
            return Config(
                cache=CacheSettings(**config_dict.get('cache', {})),
                validation=ValidationSettings(**config_dict.get('validation', {})),
                storage=StorageSettings(**config_dict.get('storage', {})),
                logging=LoggingConfig(**config_dict.get('logging', {})),
                environment=config_dict.get('environment', 'development'),
                debug=bool(config_dict.get('debug', False))
            )
        except TypeError as e:
            logger.error(f"Failed to create config object: {e}")
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _validate_config(self, config: Config):
        """Validate configuration values"""
        errors = []

        if config.cache.ttl_ms <= 0:
            errors.append("Cache TTL must be positive")

        if config.cache.max_cache_size < 1:
            errors.append("Max cache size must be at least 1")

        if config.cache.cleanup_interval_ms <= 0:
            errors.append("Cleanup interval must be positive")

        if config.cache.retry_attempts < 1:
            errors.append("Retry attempts must be at least 1")

        if config.validation.max_component_score <= 0:
            errors.append("Max component score must be positive")

        if config.validation.max_total_score < config.validation.max_component_score:
            errors.append("Max total score must not be below the max component score")

        if not 0 <= config.validation.percentage_decimals <= 10:
            errors.append("Percentage decimals must be between 0 and 10")

        if config.storage.backend not in SUPPORTED_BACKENDS:
            errors.append(f"Storage backend must be one of {', '.join(SUPPORTED_BACKENDS)}")

        if config.storage.redis_port < 1 or config.storage.redis_port > 65535:
            errors.append("Redis port must be between 1 and 65535")

        if errors:
            raise ConfigurationError("Configuration validation errors: " + "; ".join(errors))

        logger.info("Configuration validation passed")

    def save_sample_config(self, file_path: str):
        """Write the default configuration as YAML

        Args:
            file_path: Path where to save the sample config
        """
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(file_path, 'w') as f:
            f.write("# Exam Score Pipeline Configuration\n")
            yaml.safe_dump(asdict(Config()), f, sort_keys=False)

        logger.info(f"Sample configuration saved to {file_path}")


def load_config(config_file: Optional[str] = None) -> Config:
    """Load configuration from file and environment

    Args:
        config_file: Optional path to configuration file

    Returns:
        Loaded configuration object
    """
    return ConfigManager(config_file).load()
