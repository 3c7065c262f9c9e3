"""Google Gemini LLM backend using the generateContent REST API."""

import os
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..core.types import LLMResponse, LLMMessage
from .http_backend import HTTPLLMBackend


class GeminiBackend(HTTPLLMBackend):
    """Gemini backend talking to ``/v1beta/models/{model}:generateContent``."""

    provider_label = "Gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com",
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 2,
    ):
        super().__init__(
            api_key=api_key or os.getenv("GEMINI_API_KEY"),
            base_url=base_url,
            model=model,
            timeout=timeout,
            max_retries=max_retries,
        )

    @property
    def name(self) -> str:
        return "gemini"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key or "",
        }

    async def _generate_content(
        self,
        contents: List[Dict[str, Any]],
        system: Optional[str],
        options: Dict[str, Any],
    ) -> LLMResponse:
        self._ensure_configured()

        model = options.get("model", self.default_model)
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": options.get("temperature", 0.7),
                "maxOutputTokens": options.get("max_tokens", 2000),
                "topP": options.get("top_p", 0.95),
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        if options.get("json_mode"):
            payload["generationConfig"]["responseMimeType"] = "application/json"

        start_time = datetime.now()
        data = await self._post_json(f"{self.base_url}/v1beta/models/{model}:generateContent", payload)
        duration = (datetime.now() - start_time).total_seconds()

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise RuntimeError(f"Gemini returned no candidates: {feedback.get('blockReason', 'unknown reason')}")

        candidate = candidates[0]
        parts = candidate.get("content", {}).get("parts", [])
        content = "".join(part.get("text", "") for part in parts)
        usage_data = data.get("usageMetadata", {})

        return LLMResponse(
            content=content,
            usage={
                "prompt_tokens": usage_data.get("promptTokenCount", 0),
                "completion_tokens": usage_data.get("candidatesTokenCount", 0),
                "total_tokens": usage_data.get("totalTokenCount", 0),
                "duration_seconds": duration,
            },
            finish_reason=candidate.get("finishReason"),
            model=data.get("modelVersion", model),
            metadata={"backend": self.name}
        )

    async def generate(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        options = options or {}
        contents = [{"role": "user", "parts": [{"text": prompt}]}]
        return await self._generate_content(contents, options.get("system"), options)

    async def chat(
        self,
        messages: List[LLMMessage],
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        options = options or {}
        system_parts = [msg.content for msg in messages if msg.role == "system"]
        if options.get("system"):
            system_parts.insert(0, options["system"])

        # Gemini calls the assistant role "model"
        contents = [
            {
                "role": "model" if msg.role == "assistant" else "user",
                "parts": [{"text": msg.content}],
            }
            for msg in messages
            if msg.role != "system"
        ]
        if not contents:
            raise ValueError("Gemini chat requires at least one user message")

        return await self._generate_content(contents, "\n\n".join(system_parts) or None, options)

    async def validate_connection(self) -> bool:
        if not self.is_available:
            return False

        try:
            client = await self._get_client()
            response = await client.get(f"{self.base_url}/v1beta/models", headers=self._headers())
            response.raise_for_status()
            return True
        except Exception:
            return False
