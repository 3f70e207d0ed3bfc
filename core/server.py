from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from observability.metrics import record_elicitation, record_tool_result

from .elicitation import ElicitationChannel, ElicitRequest, ElicitResult
from .registry import Tool, ToolDescriptor, ToolRegistry
from .results import ToolResult

logger = logging.getLogger(__name__)


class _RecordingChannel(ElicitationChannel):
    """Channel handle bound to one tool invocation; counts outcomes per tool."""

    def __init__(self, inner: ElicitationChannel, tool_name: str) -> None:
        self._inner = inner
        self._tool_name = tool_name

    async def elicit(self, request: ElicitRequest) -> ElicitResult:
        result = await self._inner.elicit(request)
        record_elicitation(self._tool_name, result.action.value)
        return result


class ToolServer:
    """Routes list/call requests to registered tools and normalises failures.

    Tool faults never escape ``call_tool``: unknown tools, validation problems
    and unexpected exceptions all come back as ``ToolResult(is_error=True)``.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, tools: Iterable[Tool] = ()):
        self.config = config or {}
        self.registry = ToolRegistry()
        for tool in tools:
            self.registry.register(tool)

    # --- Public API ---
    def list_tools(self) -> List[ToolDescriptor]:
        return self.registry.list_tools()

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Mapping[str, Any]] = None,
        elicitation: Optional[ElicitationChannel] = None,
    ) -> ToolResult:
        tool = self.registry.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return ToolResult.error(f"❌ Unknown tool: {name}")

        channel = _RecordingChannel(elicitation, name) if elicitation is not None else None
        logger.info("Calling tool %s", name)
        start = time.perf_counter()
        try:
            result = await tool.execute(dict(arguments or {}), channel)
        except Exception as e:
            logger.exception("Tool %s failed", name)
            result = self._error(name, e)
        record_tool_result(name, not result.is_error, int((time.perf_counter() - start) * 1000))
        return result

    # --- Utilities ---
    @staticmethod
    def _error(tool_name: str, error: BaseException) -> ToolResult:
        message = str(error) or error.__class__.__name__
        return ToolResult.error(f"❌ Error in {tool_name}: {message}")
