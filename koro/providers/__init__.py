"""LLM provider implementations."""

from koro.providers.base import LLMProvider, LLMResponse
from koro.providers.openai_compat import OpenAICompatibleProvider

__all__ = ["LLMProvider", "LLMResponse", "OpenAICompatibleProvider"]


# Lazy import to avoid a hard dependency on the Anthropic SDK at import time.
def __getattr__(name: str):  # noqa: N807
    if name == "AnthropicProvider":
        from koro.providers.anthropic import AnthropicProvider
        return AnthropicProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
