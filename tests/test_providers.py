"""Tests for LLM providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from koro.providers.anthropic import AnthropicProvider
from koro.providers.base import LLMProvider, LLMResponse
from koro.providers.openai_compat import OpenAICompatibleProvider


def _http_response(status: int, payload) -> httpx.Response:
    request = httpx.Request("POST", "https://api.example.com/v1/chat/completions")
    return httpx.Response(status, json=payload, request=request)


class TestLLMResponse:
    """Tests for LLMResponse dataclass."""

    def test_default_values(self):
        response = LLMResponse()

        assert response.content is None
        assert response.finish_reason == "stop"
        assert response.usage == {}
        assert response.is_error is False

    def test_error(self):
        response = LLMResponse(content="boom", finish_reason="error")
        assert response.is_error is True


class TestLLMProviderInterface:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            LLMProvider()


class TestOpenAICompatibleProvider:
    def test_defaults(self):
        provider = OpenAICompatibleProvider(api_key="sk-test")
        assert provider.base_url == "https://api.openai.com/v1"
        assert provider.get_default_model() == "gpt-4o"

    def test_parse_response(self):
        provider = OpenAICompatibleProvider()
        result = provider._parse_response({
            "choices": [{"message": {"content": "Hi"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
        })
        assert result.content == "Hi"
        assert result.usage["total_tokens"] == 4

    async def test_chat_posts_messages(self):
        provider = OpenAICompatibleProvider(api_key="sk-test", api_base="https://api.example.com/v1")
        response = _http_response(200, {
            "choices": [{"message": {"content": "pong"}, "finish_reason": "stop"}],
        })
        with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=response)) as post:
            result = await provider.chat([{"role": "user", "content": "ping"}], model="m1")

        assert result.content == "pong"
        url = post.call_args.args[0]
        kwargs = post.call_args.kwargs
        assert url == "https://api.example.com/v1/chat/completions"
        assert kwargs["json"]["model"] == "m1"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"

    async def test_http_error_is_error_response(self):
        provider = OpenAICompatibleProvider(api_key="sk-test")
        response = _http_response(500, {"error": "overloaded"})
        with patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=response)):
            result = await provider.chat([{"role": "user", "content": "ping"}])
        assert result.is_error
        assert "500" in result.content

    async def test_transport_error_is_error_response(self):
        provider = OpenAICompatibleProvider(api_key="sk-test")
        err = httpx.ConnectError("refused")
        with patch.object(httpx.AsyncClient, "post", new=AsyncMock(side_effect=err)):
            result = await provider.chat([{"role": "user", "content": "ping"}])
        assert result.is_error
        assert "refused" in result.content


class TestAnthropicProvider:
    def _provider(self, create: AsyncMock) -> AnthropicProvider:
        provider = AnthropicProvider(api_key="sk-ant-test")
        provider.client = MagicMock()
        provider.client.messages.create = create
        return provider

    async def test_system_extracted(self):
        message = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Hello")],
            usage=SimpleNamespace(input_tokens=5, output_tokens=2),
            stop_reason="end_turn",
        )
        create = AsyncMock(return_value=message)
        provider = self._provider(create)

        result = await provider.chat([
            {"role": "system", "content": "You are koro"},
            {"role": "user", "content": "hi"},
        ])

        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "You are koro"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert result.content == "Hello"
        assert result.usage["total_tokens"] == 7

    async def test_api_error_is_error_response(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=request))
        result = await self._provider(create).chat([{"role": "user", "content": "hi"}])
        assert result.is_error
