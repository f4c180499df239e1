"""Anthropic LLM provider using the official SDK."""

from typing import Any

import anthropic

from koro.providers.base import LLMProvider, LLMResponse


class AnthropicProvider(LLMProvider):
    """
    LLM provider for the Anthropic Messages API.

    Uses the official anthropic Python SDK with async support.
    """

    DEFAULT_BASE_URL = "https://api.anthropic.com"

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "claude-sonnet-4-6",
        timeout: float = 120.0,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            base_url=api_base or self.DEFAULT_BASE_URL,
            timeout=timeout,
        )

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Send a chat completion request."""
        # Anthropic takes system as a top-level parameter.
        system_parts: list[str] = []
        non_system: list[dict[str, Any]] = []
        for msg in messages:
            if msg.get("role") == "system":
                system_parts.append(msg["content"])
            else:
                non_system.append(msg)

        kwargs: dict[str, Any] = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "messages": non_system,
            "temperature": temperature,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)

        try:
            response = await self.client.messages.create(**kwargs)
            return self._parse_response(response)
        except anthropic.APIStatusError as e:
            return LLMResponse(
                content=f"API error ({e.status_code}): {str(e.message)[:500]}",
                finish_reason="error",
            )
        except anthropic.APIError as e:
            return LLMResponse(
                content=f"Request failed: {e}",
                finish_reason="error",
            )

    @staticmethod
    def _parse_response(response: Any) -> LLMResponse:
        """Parse an Anthropic Message into our standard format."""
        content_parts = [block.text for block in response.content if block.type == "text"]

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            content="\n\n".join(content_parts) if content_parts else None,
            finish_reason=response.stop_reason or "stop",
            usage=usage,
        )

    def get_default_model(self) -> str:
        return self.default_model
