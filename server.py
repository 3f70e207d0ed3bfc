#!/usr/bin/env python3
"""
Ice Cream Topping Recommender MCP server (stdio transport).

Speaks JSON-RPC 2.0 over stdin/stdout. Messages are newline-delimited JSON;
Content-Length framing is detected from the first header line and then used
for replies as well. All logging goes to stderr.
"""
import asyncio
import json
import logging
import sys
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Dict, Optional

from core.config import SERVER_NAME, SERVER_VERSION, load_config
from core.server import ToolServer
from core.session import McpSession
from handlers.toppings import IceCreamToppingRecommenderTool
from observability.metrics import init_metrics, metrics_payload_bytes

logger = logging.getLogger(__name__)


def build_server(config: Optional[Dict[str, Any]] = None) -> ToolServer:
    """Create the dispatcher with every tool this server exposes."""
    return ToolServer(config if config is not None else load_config(), tools=[IceCreamToppingRecommenderTool()])


class StdioTransport:
    """Reads and writes JSON-RPC messages on binary stdio streams."""

    def __init__(self, stdin_b, stdout_b) -> None:
        self.stdin_b = stdin_b
        self.stdout_b = stdout_b
        self.use_headers = False

    async def _readline(self) -> bytes:
        return await asyncio.get_running_loop().run_in_executor(None, self.stdin_b.readline)

    async def read_message(self) -> Optional[Any]:
        """Return the next decoded message, or None at EOF. Skips unparseable input."""
        while True:
            line = await self._readline()
            if not line:
                return None
            stripped = line.strip()
            if not stripped:
                continue
            try:
                if stripped.lower().startswith(b"content-length:"):
                    self.use_headers = True
                    length = int(stripped.split(b":", 1)[1].strip())
                    # consume remaining headers until blank line
                    while True:
                        h = await self._readline()
                        if not h or h in (b"\r\n", b"\n"):
                            break
                    body = await asyncio.get_running_loop().run_in_executor(None, self.stdin_b.read, length)
                    return json.loads(body.decode("utf-8", errors="replace"))
                return json.loads(stripped.decode("utf-8", errors="replace"))
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON received: {e}")
            except ValueError as e:
                logger.error(f"Header parse error: {e}")

    async def send(self, obj: Dict[str, Any]) -> None:
        body = json.dumps(obj, ensure_ascii=False).encode("utf-8")
        if self.use_headers:
            self.stdout_b.write(f"Content-Length: {len(body)}\r\n\r\n".encode("utf-8"))
            self.stdout_b.write(body)
        else:
            self.stdout_b.write(body + b"\n")
        self.stdout_b.flush()


async def serve(server: ToolServer, stdin_b, stdout_b) -> None:
    """Run one session until the client closes stdin."""
    transport = StdioTransport(stdin_b, stdout_b)
    session = McpSession(server, transport.send)
    try:
        while True:
            message = await transport.read_message()
            if message is None:
                break
            await session.receive(message)
    finally:
        await session.close()


def _start_metrics_exporter(bind: str) -> None:
    host, port = bind.split(":", 1)

    class _MetricsHandler(BaseHTTPRequestHandler):
        def do_GET(self):  # type: ignore
            if self.path != "/metrics":
                self.send_response(404); self.end_headers(); return
            body = metrics_payload_bytes()
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; version=0.0.4")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            logger.debug("metrics: " + format, *args)

    def _serve_metrics():
        try:
            httpd = HTTPServer((host, int(port)), _MetricsHandler)
            httpd.serve_forever()
        except OSError as e:
            logger.warning("Metrics server disabled: %s", e)

    threading.Thread(target=_serve_metrics, name="metrics-http", daemon=True).start()
    logger.info("/metrics exporter on http://%s:%s/metrics", host, port)


def _install_fault_handlers(loop: asyncio.AbstractEventLoop) -> None:
    def _loop_exception(loop, context):
        logger.error("Unhandled async error: %s", context.get("message"), exc_info=context.get("exception"))

    def _excepthook(exc_type, exc, tb):
        logger.critical("Uncaught exception", exc_info=(exc_type, exc, tb))

    loop.set_exception_handler(_loop_exception)
    sys.excepthook = _excepthook


async def _run(config: Dict[str, Any]) -> None:
    _install_fault_handlers(asyncio.get_running_loop())
    server = build_server(config)
    logger.info(f"✅ {SERVER_NAME} v{SERVER_VERSION} started on stdio")
    for descriptor in server.list_tools():
        logger.info(f"🔧 Available tool: {descriptor.name}")
    await serve(server, sys.stdin.buffer, sys.stdout.buffer)


def main():
    """Main entry point for the stdio MCP server"""
    config = load_config()
    logging.basicConfig(level=config["log_level"], stream=sys.stderr)
    if config["metrics_enabled"]:
        init_metrics()
    if config["metrics_enabled"] and config["metrics_exporter"]:
        _start_metrics_exporter(config["metrics_bind"])
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except Exception as e:
        logger.exception(f"❌ Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
