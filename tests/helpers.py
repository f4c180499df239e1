"""Shared test doubles."""

import json
from typing import Any

from koro.providers.base import LLMProvider, LLMResponse


class ScriptedProvider(LLMProvider):
    """Provider that returns canned responses in sequence and records calls."""

    def __init__(self, responses: list[LLMResponse | str] | None = None):
        super().__init__(api_key="fake")
        self._responses = list(responses or [])
        self.calls: list[list[dict[str, Any]]] = []

    async def chat(self, messages, model=None, **kwargs) -> LLMResponse:
        self.calls.append(messages)
        if self._responses:
            resp = self._responses.pop(0)
        else:
            resp = LLMResponse(content=json.dumps({"reply": "(fallback)"}))
        if isinstance(resp, str):
            resp = LLMResponse(content=resp)
        return resp

    def get_default_model(self) -> str:
        return "mock-model"


def reply_json(reply: str, **extra: Any) -> str:
    return json.dumps({"reply": reply, **extra})
