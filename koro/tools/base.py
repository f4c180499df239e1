"""Base class for tool-protocol operations."""

from abc import ABC, abstractmethod
from typing import Any


class Tool(ABC):
    """An operation exposed to external clients through the tool protocol."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name used in calls."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool does."""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """Run the tool and return text for the caller."""

    def to_schema(self) -> dict[str, Any]:
        """Schema in the tool-protocol ``tools/list`` shape."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }
