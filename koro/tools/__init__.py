"""Tool-invocation protocol operations."""

from koro.tools.base import Tool
from koro.tools.memory import (
    AppendNoteTool,
    ReadCoreMemoryTool,
    ReadDailyLogTool,
    ReadSummaryTool,
    SearchLogsTool,
    UpdateCoreMemoryTool,
    WriteSummaryTool,
    create_memory_tools,
)
from koro.tools.registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolRegistry",
    "AppendNoteTool",
    "ReadCoreMemoryTool",
    "ReadDailyLogTool",
    "ReadSummaryTool",
    "SearchLogsTool",
    "UpdateCoreMemoryTool",
    "WriteSummaryTool",
    "create_memory_tools",
]
