"""Anthropic (Claude) LLM backend using the Messages REST API."""

import os
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..core.types import LLMResponse, LLMMessage
from .http_backend import HTTPLLMBackend

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicBackend(HTTPLLMBackend):
    """Claude backend talking to ``/v1/messages``."""

    provider_label = "Anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.anthropic.com",
        model: str = "claude-sonnet-4-20250514",
        timeout: int = 60,
        max_retries: int = 2,
    ):
        super().__init__(
            api_key=api_key or os.getenv("ANTHROPIC_API_KEY"),
            base_url=base_url,
            model=model,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def name(self) -> str:
        return "anthropic"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def _messages(
        self,
        messages: List[Dict[str, str]],
        system: Optional[str],
        options: Dict[str, Any],
    ) -> LLMResponse:
        self._ensure_configured()

        payload: Dict[str, Any] = {
            "model": options.get("model", self.default_model),
            "max_tokens": options.get("max_tokens", 2000),
            "temperature": options.get("temperature", 0.7),
            "messages": messages,
        }
        if system:
            payload["system"] = system

        start_time = datetime.now()
        data = await self._post_json(f"{self.base_url}/v1/messages", payload)
        duration = (datetime.now() - start_time).total_seconds()

        content = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        usage_data = data.get("usage", {})
        input_tokens = usage_data.get("input_tokens", 0)
        output_tokens = usage_data.get("output_tokens", 0)

        return LLMResponse(
            content=content,
            usage={
                "prompt_tokens": input_tokens,
                "completion_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
                "duration_seconds": duration,
            },
            finish_reason=data.get("stop_reason"),
            model=data.get("model"),
            metadata={
                "backend": self.name,
                "request_id": data.get("id"),
            }
        )

    async def generate(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        options = options or {}
        return await self._messages(
            [{"role": "user", "content": prompt}],
            options.get("system"),
            options,
        )

    async def chat(
        self,
        messages: List[LLMMessage],
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Conduct a chat conversation.

        Claude takes system instructions as a separate field, so system
        messages are pulled out of the message list and joined.
        """
        options = options or {}
        system_parts = [msg.content for msg in messages if msg.role == "system"]
        if options.get("system"):
            system_parts.insert(0, options["system"])

        converted = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
            if msg.role in ("user", "assistant")
        ]
        if not converted:
            raise ValueError("Anthropic chat requires at least one user message")

        return await self._messages(converted, "\n\n".join(system_parts) or None, options)

    async def validate_connection(self) -> bool:
        if not self.is_available:
            return False

        try:
            client = await self._get_client()
            response = await client.get(f"{self.base_url}/v1/models", headers=self._headers())
            response.raise_for_status()
            return True
        except Exception:
            return False
