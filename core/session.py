from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from .config import SERVER_NAME, SERVER_VERSION
from .elicitation import ElicitationChannel, ElicitationError, SessionElicitationChannel
from .server import ToolServer

logger = logging.getLogger(__name__)

Send = Callable[[Dict[str, Any]], Awaitable[None]]


def _error(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


class McpSession:
    """One client connection speaking JSON-RPC 2.0.

    Transports feed every decoded message to ``receive``. Requests are
    answered from their own task so that a tool suspended on elicitation does
    not stop the transport from reading the client's answer.
    """

    def __init__(self, server: ToolServer, send: Send, config: Optional[Dict[str, Any]] = None) -> None:
        self.server = server
        self._send = send
        self.config = config if config is not None else server.config
        self.client_capabilities: Dict[str, Any] = {}
        self.client_info: Dict[str, Any] = {}
        self._ids = itertools.count(1)
        self._pending: Dict[Any, asyncio.Future] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def supports_elicitation(self) -> bool:
        return "elicitation" in self.client_capabilities

    def elicitation_channel(self) -> Optional[ElicitationChannel]:
        if not self.supports_elicitation:
            return None
        return SessionElicitationChannel(self.request, timeout=self.config.get("elicitation_timeout"))

    # --- Inbound ---
    async def receive(self, message: Any) -> None:
        if not isinstance(message, dict):
            await self._send(_error(None, -32600, "Invalid Request"))
            return
        if "method" not in message:
            self._resolve(message)
            return
        if "id" not in message:
            logger.debug("Notification received: %s", message.get("method"))
            return
        task = asyncio.create_task(self._respond(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _respond(self, message: Dict[str, Any]) -> None:
        response = await self.handle_request(message)
        try:
            await self._send(response)
        except Exception as e:
            logger.error("Error sending response to %s: %s", message.get("method"), e)

    async def handle_request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        request_id = message.get("id")
        method = message.get("method")
        params = message.get("params") or {}
        if not isinstance(params, dict):
            return _error(request_id, -32602, "Invalid params: expected an object")
        try:
            if method == "initialize":
                result = self._initialize(params)
            elif method == "ping":
                result = {}
            elif method == "tools/list":
                result = {"tools": [d.to_json() for d in self.server.list_tools()]}
            elif method == "tools/call":
                name = params.get("name")
                if not name or not isinstance(name, str):
                    return _error(request_id, -32602, "Missing tool name")
                arguments = params.get("arguments") or {}
                if not isinstance(arguments, dict):
                    return _error(request_id, -32602, "Tool arguments must be an object")
                tool_result = await self.server.call_tool(name, arguments, self.elicitation_channel())
                result = tool_result.to_json()
            else:
                return _error(request_id, -32601, f"Method not found: {method}")
        except Exception as e:
            logger.exception("Error handling %s: %s", method, e)
            return _error(request_id, -32603, "Internal error")
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.client_capabilities = dict(params.get("capabilities") or {})
        self.client_info = dict(params.get("clientInfo") or {})
        logger.info(
            "Client %s initialized (elicitation=%s)",
            self.client_info.get("name", "unknown"),
            self.supports_elicitation,
        )
        return {
            "protocolVersion": self.config.get("protocol_version", "2025-06-18"),
            "capabilities": {"tools": {"listChanged": False}, "elicitation": {}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    # --- Outbound ---
    async def request(self, method: str, params: Dict[str, Any]) -> Any:
        """Send a request to the client and wait for its result payload."""
        if self._closed:
            raise ElicitationError("Connection closed")
        request_id = f"srv-{next(self._ids)}"
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
            return await future
        finally:
            self._pending.pop(request_id, None)

    def _resolve(self, message: Dict[str, Any]) -> None:
        future = self._pending.get(message.get("id"))
        if future is None or future.done():
            logger.warning("Dropping response with unknown id %r", message.get("id"))
            return
        if "error" in message:
            err = message.get("error") or {}
            future.set_exception(ElicitationError(f"Client returned error: {err.get('message', err)}"))
        else:
            future.set_result(message.get("result"))

    async def close(self) -> None:
        """Fail outstanding outbound requests and wait for in-flight calls."""
        self._closed = True
        for future in list(self._pending.values()):
            if not future.done():
                future.set_exception(ElicitationError("Connection closed before the client answered"))
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
