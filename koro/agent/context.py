"""Context assembler for building bounded agent prompts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import structlog

from koro.memory.models import CoreDocument, LogRecord
from koro.memory.store import MemoryStore
from koro.skills.library import SkillLibrary

logger = structlog.get_logger(__name__)

TRUNCATION_MARKER = "\n...[truncated]"


@dataclass
class AssembledContext:
    """Everything the model sees besides the user's text."""

    core: dict[CoreDocument, str]
    excerpts: list[LogRecord] = field(default_factory=list)
    skills: list[tuple[str, str]] = field(default_factory=list)
    now: datetime = field(default_factory=datetime.now)
    core_truncated: bool = False
    warnings: list[str] = field(default_factory=list)

    def render(self) -> str:
        parts = [f"# Current Time\n\n{self.now:%Y-%m-%d %H:%M (%A)}"]

        core = "\n\n---\n\n".join(
            self.core.get(doc, "") or f"({doc.value}: empty)" for doc in CoreDocument
        )
        parts.append(f"# Core Memory\n\n{core}")

        if self.excerpts:
            lines = "\n".join(f"- {record.format()}" for record in self.excerpts)
            parts.append(f"# Relevant Log Excerpts\n\n{lines}")

        if self.skills:
            lines = "\n".join(f"- **{name}**: {summary}" for name, summary in self.skills)
            parts.append(f"# Available Skills\n\n{lines}")

        return "\n\n---\n\n".join(parts)

    def __len__(self) -> int:
        return len(self.render())


class ContextAssembler:
    """
    Builds the context for a request within a character budget.

    Core memory is always included. Log excerpts and skill summaries are
    trimmed first when the budget is tight; core memory is only truncated as
    a last resort, and that is always flagged.
    """

    def __init__(
        self,
        store: MemoryStore,
        skills: SkillLibrary,
        max_chars: int = 16000,
        max_excerpts: int = 20,
        window_days: int = 7,
    ):
        self.store = store
        self.skills = skills
        self.max_chars = max_chars
        self.max_excerpts = max_excerpts
        self.window_days = window_days

    def build(self, query: str, today: date | None = None) -> AssembledContext:
        today = today or date.today()
        context = AssembledContext(
            core={doc: self.store.read_core(doc) for doc in CoreDocument},
            excerpts=self.select_excerpts(query, today),
            skills=self.skills.list(),
        )
        self._fit_budget(context)
        return context

    def select_excerpts(self, query: str, today: date) -> list[LogRecord]:
        """Most relevant records in the window, ties broken by recency."""
        if self.max_excerpts <= 0:
            return []
        window = (today - timedelta(days=self.window_days), today)
        search = self.store.search_logs(query, window)

        scored = [(search.score(record), record) for record in search]
        scored.sort(key=lambda item: (item[0], item[1].timestamp), reverse=True)
        selected = [record for _, record in scored[: self.max_excerpts]]

        if len(selected) < self.max_excerpts:
            # Top up with the most recent records so context is never empty
            # just because the wording did not match.
            recent = sorted(
                self.store.search_logs("", window),
                key=lambda r: r.timestamp,
                reverse=True,
            )
            for record in recent:
                if len(selected) >= self.max_excerpts:
                    break
                if record not in selected:
                    selected.append(record)

        return selected

    def _fit_budget(self, context: AssembledContext) -> None:
        while len(context) > self.max_chars and context.excerpts:
            context.excerpts.pop()

        while len(context) > self.max_chars and context.skills:
            context.skills.pop()

        overflow = len(context) - self.max_chars
        if overflow <= 0:
            return

        self._truncate_core(context, overflow)

    def _truncate_core(self, context: AssembledContext, overflow: int) -> None:
        """Cap each document at a fair share of the remaining budget."""
        core_total = sum(len(content) for content in context.core.values())
        available = max(core_total - overflow, 0)

        # Water-fill: small documents keep everything, large ones share the rest.
        allowance: dict[CoreDocument, int] = {}
        ordered = sorted(context.core, key=lambda d: len(context.core[d]))
        remaining = available
        for i, doc in enumerate(ordered):
            share = remaining // (len(ordered) - i)
            allowance[doc] = min(len(context.core[doc]), share)
            remaining -= allowance[doc]

        truncated: list[str] = []
        for doc in CoreDocument:
            content = context.core[doc]
            if len(content) <= allowance[doc]:
                continue
            keep = max(allowance[doc] - len(TRUNCATION_MARKER), 0)
            context.core[doc] = content[:keep] + TRUNCATION_MARKER
            truncated.append(doc.value)

        if not truncated:
            return

        context.core_truncated = True
        warning = f"Core memory truncated to fit context budget: {', '.join(truncated)}"
        context.warnings.append(warning)
        logger.warning(
            "context.core_truncated",
            documents=truncated,
            budget=self.max_chars,
            size=len(context),
        )
