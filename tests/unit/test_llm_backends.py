"""Unit tests for LLM backend implementations."""

import os

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from stargate_portal.config.settings import LLMSettings
from stargate_portal.core.types import LLMMessage, LLMResponse
from stargate_portal.llm import create_llm_backend
from stargate_portal.llm.anthropic_backend import AnthropicBackend
from stargate_portal.llm.fallback_manager import LLMFallbackManager
from stargate_portal.llm.gemini_backend import GeminiBackend
from stargate_portal.llm.openai_backend import OpenAIBackend


def make_backend(name, content="ok", available=True, reachable=True, error=None):
    backend = MagicMock()
    backend.name = name
    backend.is_available = available
    backend.validate_connection = AsyncMock(return_value=reachable)
    if error is not None:
        backend.generate = AsyncMock(side_effect=error)
        backend.chat = AsyncMock(side_effect=error)
    else:
        backend.generate = AsyncMock(return_value=LLMResponse(content=content))
        backend.chat = AsyncMock(return_value=LLMResponse(content=content))
    return backend


class TestOpenAIBackend:
    """Test OpenAI backend implementation."""

    def test_backend_initialization(self):
        """Test OpenAI backend initialization."""
        backend = OpenAIBackend(api_key="test_key")
        assert backend.name == "openai"
        assert backend.is_available is True
        assert backend.default_model == "gpt-4o"

    def test_backend_initialization_no_key(self):
        """Test OpenAI backend without API key."""
        backend = OpenAIBackend()
        assert backend.is_available is False
        assert backend.api_key is None

    def test_backend_initialization_with_env_key(self):
        """Test OpenAI backend with environment variable."""
        with patch.dict(os.environ, {"OPENAI_API_KEY": "env_key"}):
            backend = OpenAIBackend()
            assert backend.is_available is True
            assert backend.api_key == "env_key"

    @pytest.mark.asyncio
    async def test_generate_success(self):
        """Test successful text generation."""
        mock_client = MagicMock()
        mock_response = MagicMock()
        mock_response.choices = [MagicMock()]
        mock_response.choices[0].message.content = "Generated text"
        mock_response.choices[0].finish_reason = "stop"
        mock_response.model = "gpt-4o"
        mock_response.usage.prompt_tokens = 10
        mock_response.usage.completion_tokens = 20
        mock_response.usage.total_tokens = 30
        mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

        backend = OpenAIBackend(api_key="test_key")
        backend._client = mock_client

        response = await backend.generate("Test prompt", {"system": "Be brief", "json_mode": True})

        assert response.content == "Generated text"
        assert response.usage["total_tokens"] == 30
        assert response.metadata["backend"] == "openai"

        request = mock_client.chat.completions.create.call_args.kwargs
        assert request["messages"][0] == {"role": "system", "content": "Be brief"}
        assert request["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_generate_api_error(self):
        """Test generation with API error."""
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIError(
                "API Error",
                request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
                body=None,
            )
        )

        backend = OpenAIBackend(api_key="test_key")
        backend._client = mock_client

        with pytest.raises(RuntimeError, match="OpenAI API error"):
            await backend.generate("Test prompt")

    @pytest.mark.asyncio
    async def test_generate_unexpected_error(self):
        """Test unexpected errors are wrapped."""
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=KeyError("boom"))

        backend = OpenAIBackend(api_key="test_key")
        backend._client = mock_client

        with pytest.raises(RuntimeError, match="Failed to generate with OpenAI"):
            await backend.generate("Test prompt")

    @pytest.mark.asyncio
    async def test_generate_not_configured(self):
        """Test generation without an API key."""
        backend = OpenAIBackend()
        with pytest.raises(RuntimeError, match="not configured"):
            await backend.generate("Test prompt")

    @pytest.mark.asyncio
    async def test_validate_connection_without_key(self):
        """Test connection check is false without a key."""
        assert await OpenAIBackend().validate_connection() is False


class TestAnthropicBackend:
    """Test Anthropic backend implementation."""

    def test_headers(self):
        """Test the Messages API headers."""
        backend = AnthropicBackend(api_key="sk-ant")
        headers = backend._headers()
        assert backend.name == "anthropic"
        assert headers["x-api-key"] == "sk-ant"
        assert headers["anthropic-version"] == "2023-06-01"

    @pytest.mark.asyncio
    async def test_generate_success(self):
        """Test text blocks are joined and usage is mapped."""
        backend = AnthropicBackend(api_key="sk-ant")
        data = {
            "id": "msg_1",
            "model": "claude-sonnet-4-20250514",
            "stop_reason": "end_turn",
            "content": [
                {"type": "text", "text": "Hello "},
                {"type": "tool_use", "id": "t1"},
                {"type": "text", "text": "world"},
            ],
            "usage": {"input_tokens": 12, "output_tokens": 8},
        }
        with patch.object(backend, "_post_json", new=AsyncMock(return_value=data)) as post:
            response = await backend.generate("Hi", {"system": "Be nice"})

        assert response.content == "Hello world"
        assert response.usage["prompt_tokens"] == 12
        assert response.usage["total_tokens"] == 20
        assert response.finish_reason == "end_turn"

        url, payload = post.call_args.args
        assert url == "https://api.anthropic.com/v1/messages"
        assert payload["system"] == "Be nice"
        assert payload["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_chat_extracts_system_messages(self):
        """Test system messages become the system field."""
        backend = AnthropicBackend(api_key="sk-ant")
        data = {"content": [{"type": "text", "text": "ok"}], "usage": {}}
        messages = [
            LLMMessage(role="system", content="You write copy."),
            LLMMessage(role="user", content="Write a tagline."),
        ]
        with patch.object(backend, "_post_json", new=AsyncMock(return_value=data)) as post:
            await backend.chat(messages)

        payload = post.call_args.args[1]
        assert payload["system"] == "You write copy."
        assert payload["messages"] == [{"role": "user", "content": "Write a tagline."}]

    @pytest.mark.asyncio
    async def test_chat_requires_user_message(self):
        """Test chat with only system messages."""
        backend = AnthropicBackend(api_key="sk-ant")
        with pytest.raises(ValueError):
            await backend.chat([LLMMessage(role="system", content="Only system")])

    @pytest.mark.asyncio
    async def test_rejected_key_not_retried(self):
        """Test HTTP 401 raises immediately."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={"error": "invalid key"})

        backend = AnthropicBackend(api_key="bad")
        backend._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        with pytest.raises(RuntimeError, match="rejected the API key"):
            await backend.generate("Hi")
        assert len(calls) == 1
        await backend.close()

    @pytest.mark.asyncio
    async def test_server_errors_retried(self):
        """Test 5xx responses are retried with backoff."""
        responses = [
            httpx.Response(503),
            httpx.Response(200, json={"content": [{"type": "text", "text": "ok"}], "usage": {}}),
        ]

        def handler(request):
            return responses.pop(0)

        backend = AnthropicBackend(api_key="sk-ant", max_retries=2)
        backend._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        with patch("stargate_portal.llm.http_backend.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await backend.generate("Hi")

        assert response.content == "ok"
        sleep.assert_awaited_once_with(1)
        await backend.close()


class TestGeminiBackend:
    """Test Gemini backend implementation."""

    @pytest.mark.asyncio
    async def test_generate_success(self):
        """Test candidates are parsed and JSON mode is requested."""
        backend = GeminiBackend(api_key="g-key")
        data = {
            "candidates": [
                {"content": {"parts": [{"text": "{\"a\": 1}"}]}, "finishReason": "STOP"}
            ],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 4, "totalTokenCount": 7},
        }
        with patch.object(backend, "_post_json", new=AsyncMock(return_value=data)) as post:
            response = await backend.generate("Design", {"json_mode": True})

        assert response.content == "{\"a\": 1}"
        assert response.usage["total_tokens"] == 7
        url, payload = post.call_args.args
        assert url.endswith("/v1beta/models/gemini-2.0-flash:generateContent")
        assert payload["generationConfig"]["responseMimeType"] == "application/json"

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        """Test blocked prompts raise."""
        backend = GeminiBackend(api_key="g-key")
        data = {"promptFeedback": {"blockReason": "SAFETY"}}
        with patch.object(backend, "_post_json", new=AsyncMock(return_value=data)):
            with pytest.raises(RuntimeError, match="Gemini returned no candidates"):
                await backend.generate("Design")

    @pytest.mark.asyncio
    async def test_chat_maps_assistant_role(self):
        """Test assistant messages use the model role."""
        backend = GeminiBackend(api_key="g-key")
        data = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
        messages = [
            LLMMessage(role="user", content="Hi"),
            LLMMessage(role="assistant", content="Hello"),
            LLMMessage(role="user", content="Design a hero"),
        ]
        with patch.object(backend, "_post_json", new=AsyncMock(return_value=data)) as post:
            await backend.chat(messages)

        roles = [item["role"] for item in post.call_args.args[1]["contents"]]
        assert roles == ["user", "model", "user"]

    @pytest.mark.asyncio
    async def test_chat_requires_user_message(self):
        """Test chat with only system messages."""
        backend = GeminiBackend(api_key="g-key")
        with pytest.raises(ValueError):
            await backend.chat([LLMMessage(role="system", content="Only system")])


class TestLLMFallbackManager:
    """Test LLM fallback manager."""

    def test_unknown_backend_in_order(self):
        """Test fallback order must reference known backends."""
        with pytest.raises(ValueError, match="not found in backends"):
            LLMFallbackManager(backends=[make_backend("openai")], fallback_order=["openai", "gemini"])

    def test_availability(self):
        """Test availability reflects the backends."""
        assert LLMFallbackManager().is_available is False
        manager = LLMFallbackManager(backends=[make_backend("openai", available=False), make_backend("gemini")])
        assert manager.is_available is True
        assert manager.name == "fallback_manager"

    @pytest.mark.asyncio
    async def test_no_backends(self):
        """Test generation without any backend."""
        with pytest.raises(RuntimeError, match="No LLM backends are available"):
            await LLMFallbackManager().generate("Hi")

    @pytest.mark.asyncio
    async def test_task_routing(self):
        """Test the routed backend is tried first and task_type is stripped."""
        openai_backend = make_backend("openai", content="from openai")
        anthropic_backend = make_backend("anthropic", content="from anthropic")
        manager = LLMFallbackManager(
            backends=[openai_backend, anthropic_backend],
            task_routing={"copywriting": "anthropic"},
        )

        response = await manager.generate("Write", {"task_type": "copywriting", "temperature": 0.5})

        assert response.content == "from anthropic"
        assert response.metadata["used_backend"] == "anthropic"
        anthropic_backend.generate.assert_awaited_once_with("Write", {"temperature": 0.5})
        openai_backend.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self):
        """Test the next backend is used when the first fails."""
        failing = make_backend("openai", error=RuntimeError("boom"))
        healthy = make_backend("gemini", content="from gemini")
        manager = LLMFallbackManager(backends=[failing, healthy])

        response = await manager.generate("Hi")

        assert response.content == "from gemini"
        assert response.metadata["fallback_used"] is True

    @pytest.mark.asyncio
    async def test_all_backends_fail(self):
        """Test the last error is reported when every backend fails."""
        manager = LLMFallbackManager(backends=[
            make_backend("openai", error=RuntimeError("first")),
            make_backend("gemini", error=RuntimeError("second")),
        ])

        with pytest.raises(RuntimeError, match="All LLM backends failed. Last error: second"):
            await manager.chat([LLMMessage(role="user", content="Hi")])

    @pytest.mark.asyncio
    async def test_unreachable_backend_skipped(self):
        """Test backends failing validation are not tried first."""
        unreachable = make_backend("openai", reachable=False)
        healthy = make_backend("anthropic", content="from anthropic")
        manager = LLMFallbackManager(backends=[unreachable, healthy])

        response = await manager.generate("Hi")
        assert response.metadata["used_backend"] == "anthropic"

    def test_add_and_remove_backend(self):
        """Test managing backends at runtime."""
        manager = LLMFallbackManager(backends=[make_backend("openai")])
        manager.add_backend(make_backend("gemini"))
        assert manager.fallback_order == ["openai", "gemini"]

        with pytest.raises(ValueError, match="already exists"):
            manager.add_backend(make_backend("gemini"))

        manager.remove_backend("openai")
        assert manager.get_backend("openai") is None
        with pytest.raises(ValueError, match="not found"):
            manager.remove_backend("openai")

    def test_backend_status(self):
        """Test status includes routed tasks."""
        manager = LLMFallbackManager(
            backends=[make_backend("openai"), make_backend("gemini")],
            task_routing={"layout": "openai", "code": "openai", "design": "gemini"},
        )
        status = manager.get_backend_status()
        assert status["openai"]["routed_tasks"] == ["code", "layout"]
        assert status["gemini"]["is_available"] is True

    def test_create_llm_backend(self):
        """Test building the manager from settings."""
        manager = create_llm_backend(LLMSettings(anthropic_api_key="sk-ant"))
        assert [backend.name for backend in manager.backends] == ["openai", "anthropic", "gemini"]
        assert manager.get_backend("anthropic").is_available is True
        assert manager.get_backend("openai").is_available is False
        assert manager.task_routing["design"] == "gemini"
