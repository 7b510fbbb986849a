"""Tests for Configuration Manager"""

import os

import pytest
import yaml

from src.config.config_manager import (
    ENV_MAPPINGS,
    CacheSettings,
    Config,
    ConfigManager,
    load_config
)
from src.error_handling.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of the tests"""
    for env_var in ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)


class TestConfigManager:
    """Test cases for configuration manager"""

    def test_default_config_creation(self):
        """Test creation of default configuration"""
        config = ConfigManager().load()

        assert isinstance(config, Config)
        assert config.environment == "development"
        assert config.debug is False
        assert config.cache.ttl_ms == 300000
        assert config.cache.max_cache_size == 1000
        assert config.cache.cache_tag == "validation-cache"
        assert config.validation.max_component_score == 100.0
        assert config.validation.max_total_score == 1000.0
        assert config.storage.backend == "memory"

    def test_yaml_config_loading(self, tmp_path):
        """Test loading configuration from YAML file"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({
            "environment": "testing",
            "cache": {"ttl_ms": 60000, "max_cache_size": 10},
            "storage": {"backend": "redis", "redis_host": "cache.local"}
        }))

        config = ConfigManager(str(config_file)).load()

        assert config.environment == "testing"
        assert config.cache.ttl_ms == 60000
        assert config.cache.max_cache_size == 10
        assert config.cache.cleanup_interval_ms == 300000
        assert config.storage.backend == "redis"
        assert config.storage.redis_host == "cache.local"

    def test_missing_config_file_uses_defaults(self, tmp_path):
        config = ConfigManager(str(tmp_path / "absent.yaml")).load()
        assert config.cache == CacheSettings()

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test environment variables win over the file"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"cache": {"ttl_ms": 60000}}))

        monkeypatch.setenv("SCORE_CACHE_TTL_MS", "1000")
        monkeypatch.setenv("SCORE_MAX_TOTAL", "500.5")
        monkeypatch.setenv("STORAGE_BACKEND", "redis")
        monkeypatch.setenv("LOG_FILE_ENABLED", "true")
        monkeypatch.setenv("DEBUG", "yes")

        config = ConfigManager(str(config_file)).load()

        assert config.cache.ttl_ms == 1000
        assert config.validation.max_total_score == 500.5
        assert config.storage.backend == "redis"
        assert config.logging.file_enabled is True
        assert config.debug is True

    def test_validation_errors(self, monkeypatch):
        """Test invalid values are all reported together"""
        monkeypatch.setenv("SCORE_CACHE_TTL_MS", "0")
        monkeypatch.setenv("STORAGE_BACKEND", "sqlite")

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager().load()

        message = str(exc_info.value)
        assert "Cache TTL must be positive" in message
        assert "Storage backend must be one of" in message

    def test_total_below_component_rejected(self, monkeypatch):
        monkeypatch.setenv("SCORE_MAX_COMPONENT", "200")
        monkeypatch.setenv("SCORE_MAX_TOTAL", "100")

        with pytest.raises(ConfigurationError):
            ConfigManager().load()

    def test_unknown_setting_rejected(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump({"cache": {"unknown_option": 1}}))

        with pytest.raises(ConfigurationError):
            ConfigManager(str(config_file)).load()

    def test_get_config_before_load(self):
        with pytest.raises(RuntimeError):
            ConfigManager().get_config()

    def test_get_config_after_load(self):
        manager = ConfigManager()
        config = manager.load()

        assert manager.get_config() is config

    def test_save_sample_config(self, tmp_path):
        """Test the sample file loads back to the defaults"""
        sample = tmp_path / "nested" / "sample.yaml"

        ConfigManager().save_sample_config(str(sample))

        assert os.path.exists(sample)
        config = load_config(str(sample))
        assert config == Config()
