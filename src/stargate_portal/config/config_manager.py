"""Configuration manager implementation."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.interfaces import ConfigInterface
from .settings import Settings

_MISSING = "__NOT_FOUND__"
_KNOWN_LLM_BACKENDS = {"openai", "anthropic", "gemini"}
_KNOWN_IMAGE_PROVIDERS = {"openai", "unsplash", "placeholder"}


def _check_writable(directory: Path) -> Optional[str]:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        marker = directory / ".write_test"
        marker.write_text("test")
        marker.unlink()
    except OSError as e:
        return str(e)
    return None


class ConfigManager(ConfigInterface):
    """Dot-key access to :class:`Settings` with file and environment support."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def _as_dict(self) -> Dict[str, Any]:
        return self.settings.model_dump()

    def _rebuild(self, config_dict: Dict[str, Any]) -> None:
        self.settings = Settings(**config_dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key, dot-separated for nested access
                (``"pipeline.max_iterations"``).
            default: Value returned when the key does not exist.
        """
        value: Any = self._as_dict()
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value, re-validating the whole settings tree."""
        parts = key.split(".")
        config_dict = self._as_dict()

        target = config_dict
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        target[parts[-1]] = value

        self._rebuild(config_dict)

    def has(self, key: str) -> bool:
        return self.get(key, _MISSING) != _MISSING

    def load_from_file(self, file_path: str) -> None:
        self.settings = Settings.from_file(file_path)

    def save_to_file(self, file_path: str) -> None:
        self.settings.to_file(file_path)

    def load_from_env(self) -> None:
        """Reload settings; pydantic-settings reads the environment itself."""
        self.settings = Settings()

    def get_all(self) -> Dict[str, Any]:
        return self._as_dict()

    def update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Merge top-level sections from a dictionary into the settings.

        Nested sections are merged key by key so a partial section does not
        reset its sibling values.
        """
        current = self._as_dict()
        for key, value in config_dict.items():
            if isinstance(value, dict) and isinstance(current.get(key), dict):
                current[key].update(value)
            else:
                current[key] = value
        self._rebuild(current)

    def get_section(self, section: str) -> Dict[str, Any]:
        return self._as_dict().get(section, {})

    def set_section(self, section: str, values: Dict[str, Any]) -> None:
        config_dict = self._as_dict()
        config_dict[section] = values
        self._rebuild(config_dict)

    def create_default_config(self, file_path: str) -> None:
        """Write a configuration file holding the default settings."""
        Settings().to_file(file_path)

    def get_data_directory(self) -> Path:
        return self.settings.get_data_directory()

    def get_log_directory(self) -> Path:
        return self.settings.get_log_directory()

    def get_database_path(self) -> Path:
        return self.settings.get_database_path()

    def get_output_directory(self) -> Path:
        return self.settings.get_output_directory()

    def ensure_directories_exist(self) -> None:
        """Ensure that all required directories exist."""
        self.get_data_directory().mkdir(parents=True, exist_ok=True)
        self.get_log_directory().mkdir(parents=True, exist_ok=True)
        self.get_output_directory().mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> List[str]:
        """Validate the current configuration.

        Returns:
            List of validation error messages. Empty list if valid.
        """
        errors = []
        llm = self.settings.llm
        pipeline = self.settings.pipeline

        if not any([llm.openai_api_key, llm.anthropic_api_key, llm.gemini_api_key]):
            errors.append(
                "No LLM backend configured. Set OPENAI_API_KEY, ANTHROPIC_API_KEY "
                "or GEMINI_API_KEY (template fallbacks will be used)."
            )

        unknown = [name for name in llm.fallback_order if name not in _KNOWN_LLM_BACKENDS]
        if unknown:
            errors.append(f"Unknown LLM backends in fallback_order: {', '.join(unknown)}")

        unknown = [name for name in self.settings.images.provider_order if name not in _KNOWN_IMAGE_PROVIDERS]
        if unknown:
            errors.append(f"Unknown image providers in provider_order: {', '.join(unknown)}")

        if not 0 <= pipeline.quality_threshold <= 10:
            errors.append("pipeline.quality_threshold must be between 0 and 10")
        if pipeline.world_class_threshold < pipeline.quality_threshold:
            errors.append("pipeline.world_class_threshold must not be below quality_threshold")
        if pipeline.max_iterations < 1:
            errors.append("pipeline.max_iterations must be at least 1")

        if self.settings.database.path:
            problem = _check_writable(Path(self.settings.database.path).parent)
            if problem:
                errors.append(f"Database path is not writable: {problem}")

        problem = _check_writable(self.get_log_directory())
        if problem:
            errors.append(f"Log directory is not writable: {problem}")

        problem = _check_writable(self.get_output_directory())
        if problem:
            errors.append(f"Output directory is not writable: {problem}")

        return errors
