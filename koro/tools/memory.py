"""Memory operations exposed through the tool protocol."""

from typing import Any

from koro.agent.dispatcher import RequestDispatcher
from koro.memory.models import CoreDocument, LogRecord, SummaryPeriod
from koro.tools.base import Tool
from koro.tools.registry import ToolRegistry

_DOCUMENT_NAMES = [doc.value for doc in CoreDocument]
_PERIOD_NAMES = [period.value for period in SummaryPeriod]


def _format_records(records: list[LogRecord], empty: str) -> str:
    if not records:
        return empty
    return "\n".join(record.format() for record in records)


class _DispatcherTool(Tool):
    def __init__(self, dispatcher: RequestDispatcher):
        self.dispatcher = dispatcher


class ReadCoreMemoryTool(_DispatcherTool):
    name = "read_core_memory"
    description = "Read a core memory document (identity, user, or state)"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"name": {"type": "string", "enum": _DOCUMENT_NAMES}},
            "required": ["name"],
        }

    async def execute(self, name: str, **kwargs: Any) -> str:
        return await self.dispatcher.read_core_memory(name)


class UpdateCoreMemoryTool(_DispatcherTool):
    name = "update_core_memory"
    description = "Replace the whole user or state document with new content"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "enum": ["user", "state"]},
                "content": {"type": "string"},
            },
            "required": ["name", "content"],
        }

    async def execute(self, name: str, content: str, **kwargs: Any) -> str:
        return await self.dispatcher.update_core_memory(name, content)


class SearchLogsTool(_DispatcherTool):
    name = "search_logs"
    description = "Search the daily logs for keywords, optionally within a date range"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "start": {"type": "string", "description": "First day, YYYY-MM-DD"},
                "end": {"type": "string", "description": "Last day, YYYY-MM-DD"},
            },
            "required": ["query"],
        }

    async def execute(
        self, query: str, start: str | None = None, end: str | None = None, **kwargs: Any
    ) -> str:
        records = await self.dispatcher.search_logs(query, start, end)
        return _format_records(records, "No results found.")


class ReadDailyLogTool(_DispatcherTool):
    name = "read_daily_log"
    description = "Read a daily log by date (YYYY-MM-DD)"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"date": {"type": "string"}},
            "required": ["date"],
        }

    async def execute(self, date: str, **kwargs: Any) -> str:
        records = await self.dispatcher.read_daily_log(date)
        return _format_records(records, f"No log for {date}")


class AppendNoteTool(_DispatcherTool):
    name = "append_note"
    description = "Append a note to today's daily log"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        }

    async def execute(self, text: str, **kwargs: Any) -> str:
        return await self.dispatcher.append_note(text)


_SUMMARY_PROPERTIES = {
    "period": {"type": "string", "enum": _PERIOD_NAMES},
    "period_id": {
        "type": "string",
        "description": "YYYY-Www for weekly (e.g. 2026-W08), YYYY-MM for monthly",
    },
}


class WriteSummaryTool(_DispatcherTool):
    name = "write_summary"
    description = "Write or replace a weekly or monthly summary"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {**_SUMMARY_PROPERTIES, "content": {"type": "string"}},
            "required": ["period", "period_id", "content"],
        }

    async def execute(self, period: str, period_id: str, content: str, **kwargs: Any) -> str:
        return await self.dispatcher.write_summary(period, period_id, content)


class ReadSummaryTool(_DispatcherTool):
    name = "read_summary"
    description = "Read a weekly or monthly summary"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": dict(_SUMMARY_PROPERTIES),
            "required": ["period", "period_id"],
        }

    async def execute(self, period: str, period_id: str, **kwargs: Any) -> str:
        content, available = await self.dispatcher.read_summary(period, period_id)
        if content is not None:
            return content
        listing = ", ".join(available) if available else "none"
        return f"No {period} summary for {period_id}. Available: {listing}"


def create_memory_tools(dispatcher: RequestDispatcher) -> ToolRegistry:
    """Registry holding the memory operations."""
    registry = ToolRegistry()
    registry.register(ReadCoreMemoryTool(dispatcher))
    registry.register(UpdateCoreMemoryTool(dispatcher))
    registry.register(SearchLogsTool(dispatcher))
    registry.register(ReadDailyLogTool(dispatcher))
    registry.register(AppendNoteTool(dispatcher))
    registry.register(WriteSummaryTool(dispatcher))
    registry.register(ReadSummaryTool(dispatcher))
    return registry
