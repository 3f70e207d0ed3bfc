from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .elicitation import ElicitationChannel
from .results import ToolResult
from .schema import Schema


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: Schema

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_json(),
        }


class Tool(ABC):
    """Base class for every tool the server exposes."""

    name: str = ""
    description: str = ""
    input_schema: Schema = Schema()

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(self.name, self.description, self.input_schema)

    @abstractmethod
    async def execute(
        self, arguments: Mapping[str, Any], elicitation: Optional[ElicitationChannel] = None
    ) -> ToolResult:
        """Run the tool. ``elicitation`` is None when the caller cannot be prompted."""


class ToolRegistry:
    """Simple tool registry mapping names to tools, in registration order."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        name = tool.name
        if not isinstance(name, str) or not name:
            raise ValueError("Tool name must be a non-empty string")
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[ToolDescriptor]:
        return [tool.descriptor() for tool in self._tools.values()]
