"""Pydantic settings model for application configuration."""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Settings for LLM backends."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_timeout: int = 60

    anthropic_api_key: Optional[str] = None
    anthropic_base_url: str = "https://api.anthropic.com"
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_timeout: int = 60

    gemini_api_key: Optional[str] = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout: int = 60

    max_retries: int = 2
    fallback_order: List[str] = Field(default_factory=lambda: ["openai", "anthropic", "gemini"])
    task_routing: Dict[str, str] = Field(
        default_factory=lambda: {
            "copywriting": "anthropic",
            "layout": "openai",
            "design": "gemini",
            "code": "openai",
            "analysis": "anthropic",
        }
    )


class ImageSettings(BaseSettings):
    """Settings for image generation providers."""

    model_config = SettingsConfigDict(env_prefix="IMAGE_", case_sensitive=False)

    provider_order: List[str] = Field(default_factory=lambda: ["openai", "unsplash", "placeholder"])
    openai_model: str = "dall-e-3"
    size: str = "1792x1024"
    quality: str = "standard"
    unsplash_access_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("unsplash_access_key", "UNSPLASH_ACCESS_KEY"),
    )
    unsplash_base_url: str = "https://api.unsplash.com"
    placeholder_base_url: str = "https://placehold.co"
    timeout: int = 60


class DatabaseSettings(BaseSettings):
    """Settings for database storage."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", case_sensitive=False)

    url: Optional[str] = None
    path: Optional[str] = None
    echo: bool = False


class LoggingSettings(BaseSettings):
    """Settings for logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    json_format: bool = False
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


class MetricsSettings(BaseSettings):
    """Settings for metrics collection."""

    model_config = SettingsConfigDict(env_prefix="METRICS_", case_sensitive=False)

    enabled: bool = True
    persist: bool = True
    retention_days: int = 30


class PipelineSettings(BaseSettings):
    """Settings for the Merlin generation pipeline."""

    model_config = SettingsConfigDict(env_prefix="MERLIN_", case_sensitive=False)

    quality_threshold: float = 7.5
    world_class_threshold: float = 8.5
    max_iterations: int = 3
    output_directory: str = "website_projects"
    output_subdirectory: str = "merlin-output"
    preview_base_url: str = "/website_projects"
    max_prompt_length: int = 12000
    max_concurrent_runs: int = 4
    generator_version: str = "8.0"


class CommerceSettings(BaseSettings):
    """Settings for the store back office."""

    model_config = SettingsConfigDict(env_prefix="COMMERCE_", case_sensitive=False)

    currency: str = "usd"
    home_country: str = "US"
    base_shipping: float = 10.0
    international_surcharge: float = 15.0
    free_weight_lbs: float = 5.0
    per_lb_rate: float = 2.0
    weight_per_item_lbs: float = 1.0


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application info
    app_name: str = "StargatePortal"
    version: str = "0.1.0"
    debug: bool = False

    # Configuration file paths
    config_file: Optional[str] = None

    # Component settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    commerce: CommerceSettings = Field(default_factory=CommerceSettings)

    @classmethod
    def from_file(cls, file_path: str) -> "Settings":
        """Load settings from a YAML or JSON file.

        Args:
            file_path: Path to the configuration file.

        Returns:
            Settings instance loaded from file.
        """
        import yaml
        import json

        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in [".yaml", ".yml"]:
                config_data = yaml.safe_load(f) or {}
            elif path.suffix.lower() == ".json":
                config_data = json.load(f)
            else:
                raise ValueError(f"Unsupported configuration file format: {path.suffix}")

        return cls(**config_data)

    def to_file(self, file_path: str) -> None:
        """Save settings to a YAML or JSON file.

        Args:
            file_path: Path where to save the configuration file.
        """
        import yaml
        import json

        path = Path(file_path)
        config_data = self.model_dump(mode="json")

        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() in [".yaml", ".yml"]:
                yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)
            elif path.suffix.lower() == ".json":
                json.dump(config_data, f, indent=2, sort_keys=False)
            else:
                raise ValueError(f"Unsupported configuration file format: {path.suffix}")

    def get_data_directory(self) -> Path:
        """Get the application data directory."""
        if self.debug:
            return Path.cwd() / "data"
        return Path.home() / ".stargate_portal"

    def get_log_directory(self) -> Path:
        """Get the application log directory."""
        return self.get_data_directory() / "logs"

    def get_database_path(self) -> Path:
        """Get the database file path."""
        if self.database.path:
            return Path(self.database.path)
        return self.get_data_directory() / "stargate.db"

    def get_output_directory(self) -> Path:
        """Get the root directory generated websites are written to."""
        return Path(self.pipeline.output_directory)
