"""Unit tests for configuration management."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from stargate_portal.config import CommerceSettings, ConfigManager, PipelineSettings, Settings
from stargate_portal.config.settings import DatabaseSettings, LLMSettings


class TestSettings:
    """Test Settings configuration model."""

    def test_default_settings_creation(self):
        """Test creating settings with defaults."""
        settings = Settings()
        assert settings.app_name == "StargatePortal"
        assert settings.version == "0.1.0"
        assert settings.debug is False
        assert settings.llm.openai_model == "gpt-4o"
        assert settings.llm.fallback_order == ["openai", "anthropic", "gemini"]
        assert settings.database.echo is False

    def test_pipeline_defaults(self):
        """Test the quality loop defaults."""
        pipeline = PipelineSettings()
        assert pipeline.quality_threshold == 7.5
        assert pipeline.world_class_threshold == 8.5
        assert pipeline.max_iterations == 3
        assert pipeline.output_subdirectory == "merlin-output"

    def test_commerce_defaults(self):
        """Test the shipping defaults."""
        commerce = CommerceSettings()
        assert commerce.currency == "usd"
        assert commerce.home_country == "US"
        assert commerce.base_shipping == 10.0
        assert commerce.international_surcharge == 15.0

    def test_task_routing_defaults(self):
        """Test that every task type is routed to a provider."""
        routing = LLMSettings().task_routing
        assert routing["copywriting"] == "anthropic"
        assert routing["layout"] == "openai"
        assert routing["design"] == "gemini"

    @patch.dict(os.environ, {"OPENAI_API_KEY": "env_key", "MERLIN_MAX_ITERATIONS": "5"})
    def test_settings_from_env(self):
        """Test loading settings from environment variables."""
        settings = Settings()
        assert settings.llm.openai_api_key == "env_key"
        assert settings.pipeline.max_iterations == 5

    def test_get_data_directory_debug(self):
        """Test data directory in debug mode."""
        settings = Settings(debug=True)
        assert settings.get_data_directory() == Path.cwd() / "data"

    def test_get_data_directory_production(self):
        """Test data directory in production mode."""
        settings = Settings(debug=False)
        assert ".stargate_portal" in str(settings.get_data_directory())

    def test_get_database_path_with_custom(self):
        """Test database path with custom path."""
        settings = Settings(database=DatabaseSettings(path="/custom/path.db"))
        assert str(settings.get_database_path()) == "/custom/path.db"

    def test_get_database_path_default(self):
        """Test database path with default."""
        settings = Settings()
        assert settings.get_database_path().name == "stargate.db"

    def test_get_output_directory(self):
        """Test the output directory follows the pipeline settings."""
        settings = Settings(pipeline=PipelineSettings(output_directory="/srv/sites"))
        assert settings.get_output_directory() == Path("/srv/sites")

    def test_settings_to_from_file_yaml(self, tmp_path):
        """Test saving and loading settings from YAML file."""
        yaml_file = tmp_path / "config.yaml"

        original_settings = Settings(
            debug=True,
            pipeline=PipelineSettings(quality_threshold=8.0),
        )
        original_settings.to_file(str(yaml_file))

        loaded_settings = Settings.from_file(str(yaml_file))

        assert loaded_settings.debug is True
        assert loaded_settings.pipeline.quality_threshold == 8.0

    def test_settings_to_from_file_json(self, tmp_path):
        """Test saving and loading settings from JSON file."""
        json_file = tmp_path / "config.json"

        Settings(debug=True).to_file(str(json_file))
        loaded_settings = Settings.from_file(str(json_file))

        assert loaded_settings.debug is True

    def test_settings_invalid_file_format(self, tmp_path):
        """Test loading settings from unsupported file format."""
        txt_file = tmp_path / "config.txt"
        txt_file.write_text("invalid format")

        with pytest.raises(ValueError, match="Unsupported configuration file format"):
            Settings.from_file(str(txt_file))

    def test_settings_missing_file(self):
        """Test loading settings from non-existent file."""
        with pytest.raises(FileNotFoundError):
            Settings.from_file("non_existent.yaml")


class TestConfigManager:
    """Test ConfigManager implementation."""

    def test_config_manager_with_custom_settings(self):
        """Test config manager with custom settings."""
        config = ConfigManager(Settings(debug=True))
        assert config.settings.debug is True

    def test_get_existing_config(self):
        """Test getting existing configuration value."""
        config = ConfigManager(Settings(debug=True))

        assert config.get("debug") is True
        assert config.get("app_name") == "StargatePortal"

    def test_get_nonexistent_config(self):
        """Test getting non-existent configuration value."""
        config = ConfigManager()
        assert config.get("nonexistent") is None
        assert config.get("nonexistent", "default") == "default"
        assert config.get("pipeline.nonexistent", 3) == 3

    def test_get_nested_config(self):
        """Test getting nested configuration values."""
        config = ConfigManager()
        assert config.get("pipeline.max_iterations") == 3
        assert config.get("database.echo") is False

    def test_set_config_value(self):
        """Test setting configuration values."""
        config = ConfigManager()

        config.set("debug", True)
        assert config.get("debug") is True

        config.set("pipeline.max_iterations", 5)
        assert config.get("pipeline.max_iterations") == 5
        assert config.settings.pipeline.max_iterations == 5

    def test_has_config_key(self):
        """Test checking if configuration key exists."""
        config = ConfigManager()

        assert config.has("debug") is True
        assert config.has("nonexistent") is False
        assert config.has("llm.openai_model") is True

    def test_get_section(self):
        """Test getting configuration section."""
        config = ConfigManager()
        pipeline = config.get_section("pipeline")

        assert pipeline["quality_threshold"] == 7.5
        assert config.get_section("missing") == {}

    def test_update_from_dict_merges_sections(self):
        """Test that a partial section keeps its sibling values."""
        config = ConfigManager()
        config.update_from_dict({"pipeline": {"max_iterations": 2}, "debug": True})

        assert config.get("pipeline.max_iterations") == 2
        assert config.get("pipeline.quality_threshold") == 7.5
        assert config.get("debug") is True

    def test_set_section(self):
        """Test replacing a whole section."""
        config = ConfigManager()
        config.set_section("commerce", {"currency": "eur", "home_country": "DE"})

        assert config.settings.commerce.currency == "eur"
        assert config.settings.commerce.home_country == "DE"

    def test_save_and_load_file(self, tmp_path):
        """Test the file round trip through the manager."""
        path = tmp_path / "stargate.yaml"
        config = ConfigManager()
        config.set("pipeline.quality_threshold", 8.0)
        config.save_to_file(str(path))

        loaded = ConfigManager()
        loaded.load_from_file(str(path))
        assert loaded.get("pipeline.quality_threshold") == 8.0

    def test_create_default_config(self, tmp_path):
        """Test writing the default configuration."""
        path = tmp_path / "default.json"
        ConfigManager().create_default_config(str(path))

        assert path.exists()
        assert Settings.from_file(str(path)).app_name == "StargatePortal"


class TestConfigValidation:
    """Test configuration validation."""

    def _config(self, tmp_path, **pipeline):
        return ConfigManager(Settings(
            debug=True,
            database=DatabaseSettings(path=str(tmp_path / "db" / "test.db")),
            pipeline=PipelineSettings(output_directory=str(tmp_path / "sites"), **pipeline),
        ))

    def test_missing_llm_keys_reported(self, tmp_path, monkeypatch):
        """Test that running without any LLM key is reported."""
        monkeypatch.chdir(tmp_path)
        errors = self._config(tmp_path).validate_config()
        assert any("No LLM backend configured" in error for error in errors)

    def test_valid_config(self, tmp_path, monkeypatch):
        """Test a configuration with one LLM key validates cleanly."""
        monkeypatch.chdir(tmp_path)
        config = self._config(tmp_path)
        config.set("llm.anthropic_api_key", "sk-test")
        assert config.validate_config() == []

    def test_threshold_errors(self, tmp_path, monkeypatch):
        """Test threshold and iteration checks."""
        monkeypatch.chdir(tmp_path)
        errors = self._config(
            tmp_path, quality_threshold=9.0, world_class_threshold=8.0, max_iterations=0
        ).validate_config()

        assert "pipeline.world_class_threshold must not be below quality_threshold" in errors
        assert "pipeline.max_iterations must be at least 1" in errors

    def test_unknown_backend_in_fallback_order(self, tmp_path, monkeypatch):
        """Test that unknown backends are reported."""
        monkeypatch.chdir(tmp_path)
        config = self._config(tmp_path)
        config.set("llm.fallback_order", ["openai", "ollama"])

        errors = config.validate_config()
        assert "Unknown LLM backends in fallback_order: ollama" in errors
