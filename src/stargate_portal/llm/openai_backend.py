"""OpenAI LLM backend implementation."""

import os
from typing import Any, Dict, List, Optional
from datetime import datetime
import openai
from openai import AsyncOpenAI

from ..core.interfaces import LLMBackendInterface
from ..core.types import LLMResponse, LLMMessage


class OpenAIBackend(LLMBackendInterface):
    """OpenAI chat-completions backend (GPT-4o by default)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: str = "gpt-4o",
        timeout: int = 60,
        max_retries: int = 2,
    ):
        """Initialize the OpenAI backend.

        Args:
            api_key: OpenAI API key. If None, uses OPENAI_API_KEY environment variable.
            base_url: Custom API base URL for OpenAI-compatible providers.
            model: Default model to use for generation.
            timeout: Request timeout in seconds.
            max_retries: Retries performed by the SDK for failed requests.
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url
        self.default_model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self._client: Optional[AsyncOpenAI] = None

    @property
    def name(self) -> str:
        return "openai"

    @property
    def is_available(self) -> bool:
        return self.api_key is not None

    async def _get_client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
        return self._client

    async def _complete(self, messages: List[Dict[str, Any]], options: Dict[str, Any]) -> LLMResponse:
        if not self.is_available:
            raise RuntimeError("OpenAI backend is not configured. Set OPENAI_API_KEY environment variable.")

        client = await self._get_client()
        request: Dict[str, Any] = {
            "model": options.get("model", self.default_model),
            "messages": messages,
            "temperature": options.get("temperature", 0.7),
            "max_tokens": options.get("max_tokens", 2000),
            "top_p": options.get("top_p", 1.0),
        }
        if options.get("json_mode"):
            request["response_format"] = {"type": "json_object"}

        start_time = datetime.now()
        response = await client.chat.completions.create(**request)
        duration = (datetime.now() - start_time).total_seconds()

        choice = response.choices[0]
        usage = {
            "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
            "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            "total_tokens": response.usage.total_tokens if response.usage else 0,
            "duration_seconds": duration,
        }

        return LLMResponse(
            content=choice.message.content or "",
            usage=usage,
            finish_reason=choice.finish_reason,
            model=response.model,
            metadata={
                "backend": self.name,
                "request_id": getattr(response, "id", None),
                "created": getattr(response, "created", None),
            }
        )

    async def generate(
        self,
        prompt: str,
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Generate text from a single user prompt.

        Raises:
            RuntimeError: If the backend is not configured or the API call fails.
        """
        options = options or {}
        messages = []
        if options.get("system"):
            messages.append({"role": "system", "content": options["system"]})
        messages.append({"role": "user", "content": prompt})

        try:
            return await self._complete(messages, options)
        except RuntimeError:
            raise
        except openai.APIError as e:
            raise RuntimeError(f"OpenAI API error: {e}") from e
        except Exception as e:
            raise RuntimeError(f"Failed to generate with OpenAI: {e}") from e

    async def chat(
        self,
        messages: List[LLMMessage],
        options: Optional[Dict[str, Any]] = None
    ) -> LLMResponse:
        """Conduct a chat conversation.

        Raises:
            RuntimeError: If the backend is not configured or the API call fails.
        """
        openai_messages = []
        for msg in messages:
            message_dict = {"role": msg.role, "content": msg.content}
            if msg.name:
                message_dict["name"] = msg.name
            openai_messages.append(message_dict)

        try:
            return await self._complete(openai_messages, options or {})
        except RuntimeError:
            raise
        except openai.APIError as e:
            raise RuntimeError(f"OpenAI API error: {e}") from e
        except Exception as e:
            raise RuntimeError(f"Failed to chat with OpenAI: {e}") from e

    async def validate_connection(self) -> bool:
        if not self.is_available:
            return False

        try:
            client = await self._get_client()
            await client.models.list()
            return True
        except Exception:
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
