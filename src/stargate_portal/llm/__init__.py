"""LLM backend implementations for StargatePortal.

This module provides the OpenAI, Anthropic and Gemini backends plus a
fallback manager that routes prompts by task type and degrades gracefully
when a provider is unavailable.
"""

from typing import Optional

from ..config.settings import LLMSettings
from .openai_backend import OpenAIBackend
from .anthropic_backend import AnthropicBackend
from .gemini_backend import GeminiBackend
from .fallback_manager import LLMFallbackManager


def create_llm_backend(settings: Optional[LLMSettings] = None) -> LLMFallbackManager:
    """Build the fallback manager from LLM settings."""
    settings = settings or LLMSettings()
    backends = [
        OpenAIBackend(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            timeout=settings.openai_timeout,
            max_retries=settings.max_retries,
        ),
        AnthropicBackend(
            api_key=settings.anthropic_api_key,
            base_url=settings.anthropic_base_url,
            model=settings.anthropic_model,
            timeout=settings.anthropic_timeout,
            max_retries=settings.max_retries,
        ),
        GeminiBackend(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            timeout=settings.gemini_timeout,
            max_retries=settings.max_retries,
        ),
    ]
    return LLMFallbackManager(
        backends=backends,
        fallback_order=settings.fallback_order,
        task_routing=settings.task_routing,
    )


__all__ = [
    "OpenAIBackend",
    "AnthropicBackend",
    "GeminiBackend",
    "LLMFallbackManager",
    "create_llm_backend",
]
