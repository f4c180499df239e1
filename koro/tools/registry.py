"""Tool registry for managing available tools."""

from typing import Any

from koro.errors import InvalidRequest, ToolNotFound
from koro.tools.base import Tool

# JSON-schema type name -> accepted Python types.
_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


class ToolRegistry:
    """Registry for dynamically managing tools."""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """Unregister a tool by name."""
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_schemas(self) -> list[dict[str, Any]]:
        """Get protocol schemas for all tools."""
        return [tool.to_schema() for tool in self._tools.values()]

    async def execute(self, name: str, params: dict[str, Any]) -> str:
        """
        Execute a tool by name.

        Raises:
            ToolNotFound: No tool is registered under ``name``.
            InvalidRequest: A required argument is missing, an unknown
                argument was passed, or a value does not match its declared
                type or enum.
        """
        tool = self._tools.get(name)
        if not tool:
            raise ToolNotFound(f"Unknown tool: {name}")

        schema = tool.parameters
        missing = [p for p in schema.get("required", []) if p not in params]
        if missing:
            raise InvalidRequest(f"Missing argument(s) for {name}: {', '.join(missing)}")
        unknown = [p for p in params if p not in schema.get("properties", {})]
        if unknown:
            raise InvalidRequest(f"Unknown argument(s) for {name}: {', '.join(unknown)}")

        for param, value in params.items():
            self._check_value(name, param, value, schema)

        return await tool.execute(**params)

    @staticmethod
    def _check_value(tool: str, param: str, value: Any, schema: dict[str, Any]) -> None:
        spec = schema.get("properties", {})[param]
        if value is None and param not in schema.get("required", []):
            return
        expected = _JSON_TYPES.get(spec.get("type", ""))
        # bool is an int subclass but never a valid number here.
        if expected and (
            not isinstance(value, expected)
            or (isinstance(value, bool) and bool not in expected)
        ):
            raise InvalidRequest(
                f"Argument '{param}' for {tool} must be of type {spec['type']}"
            )
        if "enum" in spec and value not in spec["enum"]:
            raise InvalidRequest(
                f"Argument '{param}' for {tool} must be one of: {', '.join(map(str, spec['enum']))}"
            )

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
