"""Third-party script integrations for generated websites."""

from .scripts import (
    INTEGRATIONS,
    IntegrationDefinition,
    list_integrations,
    generate_script_for_integration,
    collect_scripts,
    inject_scripts,
)

__all__ = [
    "INTEGRATIONS",
    "IntegrationDefinition",
    "list_integrations",
    "generate_script_for_integration",
    "collect_scripts",
    "inject_scripts",
]
