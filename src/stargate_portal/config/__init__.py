"""Configuration management for StargatePortal.

This module provides centralized configuration management with support for
YAML/JSON files and environment variables.
"""

from .config_manager import ConfigManager
from .settings import (
    Settings,
    LLMSettings,
    ImageSettings,
    PipelineSettings,
    CommerceSettings,
)

__all__ = [
    "ConfigManager",
    "Settings",
    "LLMSettings",
    "ImageSettings",
    "PipelineSettings",
    "CommerceSettings",
]
