"""Model gateway - one provider call per request, strictly parsed.

The provider is asked for a JSON object (see ``RESPONSE_FORMAT_PROMPT``).
Output that is not such an object is treated as a plain reply. If any part of
the object is malformed, its actions and memory updates are dropped as a whole
and only the reply text is kept.
"""

import asyncio
import json
import re
from dataclasses import dataclass, field
from typing import Any

import structlog

from koro.agent.context import AssembledContext
from koro.agent.prompts import (
    CONSOLIDATION_PROMPT,
    RESPONSE_FORMAT_PROMPT,
    SKILL_TRANSLATION_PROMPT,
)
from koro.errors import ModelUnavailable, ParseFailure
from koro.memory.models import LogRecord
from koro.providers.base import LLMProvider
from koro.skills.library import SkillDefinition

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"^\s*```(?:[\w-]+)?\s*\n?(.*?)\n?```\s*$", re.DOTALL)


@dataclass(frozen=True)
class PlannedAction:
    """One step proposed by the model: a skill by name or a literal command."""

    skill: str | None = None
    command: str | None = None
    rollback: str | None = None


@dataclass(frozen=True)
class MemoryUpdate:
    name: str
    content: str


@dataclass
class ModelReply:
    """Parsed model output.

    ``plan`` is None for a reply-only response and a non-empty list for a
    reply-with-actions response.
    """

    text: str
    plan: list[PlannedAction] | None = None
    memory_updates: list[MemoryUpdate] = field(default_factory=list)
    parse_error: str | None = None

    @property
    def kind(self) -> str:
        return "reply_with_actions" if self.plan else "reply_only"


def _strip_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(_strip_fence(text))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _parse_action(raw: Any) -> PlannedAction:
    if not isinstance(raw, dict):
        raise ParseFailure(f"Action entry is not an object: {raw!r}")

    skill = raw.get("skill")
    command = raw.get("command")
    rollback = raw.get("rollback")

    if (skill is None) == (command is None):
        raise ParseFailure(f"Action must name exactly one of skill/command: {raw!r}")
    for value in (skill, command):
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ParseFailure(f"Action field must be a non-empty string: {raw!r}")
    if rollback is not None:
        if command is None or not isinstance(rollback, str) or not rollback.strip():
            raise ParseFailure(f"Invalid rollback in action: {raw!r}")

    return PlannedAction(
        skill=skill.strip() if skill else None,
        command=command.strip() if command else None,
        rollback=rollback.strip() if rollback else None,
    )


def _parse_memory_updates(raw: Any) -> list[MemoryUpdate]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ParseFailure("memory_updates must be a list")
    updates = []
    for item in raw:
        if (
            not isinstance(item, dict)
            or not isinstance(item.get("name"), str)
            or not isinstance(item.get("content"), str)
        ):
            raise ParseFailure(f"Invalid memory update: {item!r}")
        updates.append(MemoryUpdate(name=item["name"], content=item["content"]))
    return updates


def parse_model_output(content: str) -> ModelReply:
    """Turn raw model text into a ``ModelReply`` without guessing."""
    data = _load_object(content)
    if data is None or not isinstance(data.get("reply"), str):
        # Not the structured format: the whole payload is conversational text.
        return ModelReply(text=content.strip())

    reply = ModelReply(text=data["reply"])

    raw_actions = data.get("actions") or []
    try:
        if not isinstance(raw_actions, list):
            raise ParseFailure("actions must be a list")
        plan = [_parse_action(raw) for raw in raw_actions]
        reply.plan = plan or None
    except ParseFailure as e:
        logger.warning("gateway.actions_rejected", error=e.message)
        reply.parse_error = e.message

    try:
        reply.memory_updates = _parse_memory_updates(data.get("memory_updates"))
    except ParseFailure as e:
        logger.warning("gateway.memory_updates_rejected", error=e.message)
        reply.parse_error = reply.parse_error or e.message

    if reply.parse_error:
        # A partly malformed response degrades to its reply text alone.
        reply.plan = None
        reply.memory_updates = []

    return reply


class ModelGateway:
    """Sends assembled context to the provider and parses what comes back."""

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        timeout: float = 120.0,
        max_tokens: int = 4096,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.timeout = timeout
        self.max_tokens = max_tokens

    async def _call(self, messages: list[dict[str, Any]], temperature: float) -> str:
        try:
            response = await asyncio.wait_for(
                self.provider.chat(
                    messages=messages,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("gateway.timeout", timeout=self.timeout)
            raise ModelUnavailable(f"Model call timed out after {self.timeout}s") from None

        if response.is_error:
            logger.error("gateway.provider_error", detail=response.content)
            raise ModelUnavailable(response.content or "Provider returned an error")
        return response.content or ""

    async def complete(self, context: AssembledContext, user_text: str) -> ModelReply:
        """Ask the model to answer ``user_text`` given ``context``."""
        messages = [
            {"role": "system", "content": context.render() + "\n\n---\n\n" + RESPONSE_FORMAT_PROMPT},
            {"role": "user", "content": user_text},
        ]
        content = await self._call(messages, temperature=0.7)
        reply = parse_model_output(content)
        logger.info("gateway.reply", kind=reply.kind, steps=len(reply.plan or []))
        return reply

    async def translate_skill(
        self, skill: SkillDefinition, context: AssembledContext
    ) -> tuple[list[str], str | None]:
        """Turn a skill's intent-level steps into concrete commands."""
        prompt = SKILL_TRANSLATION_PROMPT.format(
            name=skill.name,
            description=skill.description,
            steps="\n".join(f"{i}. {step}" for i, step in enumerate(skill.steps, 1)),
            rollback=skill.rollback or "(none)",
            context=context.render(),
        )
        messages = [
            {"role": "system", "content": "You are a precise shell command planner."},
            {"role": "user", "content": prompt},
        ]
        content = await self._call(messages, temperature=0.0)

        data = _load_object(content)
        if data is None:
            raise ParseFailure(f"Skill translation for '{skill.name}' was not a JSON object")

        commands = data.get("commands")
        if (
            not isinstance(commands, list)
            or len(commands) != len(skill.steps)
            or not all(isinstance(c, str) and c.strip() for c in commands)
        ):
            raise ParseFailure(
                f"Skill '{skill.name}' needs exactly {len(skill.steps)} non-empty commands"
            )

        rollback = data.get("rollback")
        if skill.rollback:
            if not isinstance(rollback, str) or not rollback.strip():
                raise ParseFailure(f"Skill '{skill.name}' rollback was not translated")
            rollback = rollback.strip()
        else:
            rollback = None

        logger.info("gateway.skill_translated", skill=skill.name, commands=commands)
        return [c.strip() for c in commands], rollback

    async def summarize_day(self, state: str, day: str, records: list[LogRecord]) -> str:
        """Produce a new current-state document from one day's log."""
        prompt = CONSOLIDATION_PROMPT.format(
            state=state or "(empty)",
            day=day,
            records="\n".join(f"- {r.format()}" for r in records),
        )
        messages = [
            {"role": "system", "content": "You are a careful memory consolidator."},
            {"role": "user", "content": prompt},
        ]
        content = (await self._call(messages, temperature=0.2)).strip()
        if not content:
            raise ParseFailure("Consolidation produced an empty document")
        return _strip_fence(content) if content.startswith("```") else content
