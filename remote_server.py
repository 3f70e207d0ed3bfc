import json
import logging
import os
import sys
import time
from collections import OrderedDict
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from core.config import SERVER_NAME, SERVER_VERSION, env_flag, load_config
from core.session import McpSession
from observability.metrics import metrics_payload_bytes
import server as mcp_server

logger = logging.getLogger(__name__)

# Config (token, limits and the enable flag are read per request so tests can monkeypatch env)
REMOTE_BIND = os.getenv("REMOTE_BIND", "0.0.0.0:8787")


def _remote_enabled() -> bool:
    return env_flag("REMOTE_ENABLED", "false")


def _rate_limits() -> tuple:
    return float(os.getenv("RATE_LIMIT_RPS", "10")), int(os.getenv("RATE_LIMIT_BURST", "20"))


def _cors_origins() -> List[str]:
    return [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def _authorized(presented: Optional[str]) -> bool:
    """True when no MCP_REMOTE_TOKEN is configured or ``presented`` matches it."""
    expected = os.getenv("MCP_REMOTE_TOKEN", "").strip()
    return not expected or presented == expected


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


class TokenBucket:
    """Refills ``rate`` tokens per second up to ``burst``; each message costs one."""

    def __init__(self, rate: float, burst: int):
        self.rate = rate
        self.burst = burst
        self.tokens = float(burst)
        self.updated = time.monotonic()

    def take(self) -> bool:
        now = time.monotonic()
        self.tokens = min(self.burst, self.tokens + (now - self.updated) * self.rate)
        self.updated = now
        if self.tokens < 1:
            return False
        self.tokens -= 1
        return True


class ClientRateLimiter:
    """One bucket per client address; the least recently seen client is evicted past ``max_clients``."""

    def __init__(self, max_clients: int = 1024):
        self.max_clients = max_clients
        self._buckets: "OrderedDict[str, TokenBucket]" = OrderedDict()

    def take(self, client: str) -> bool:
        bucket = self._buckets.pop(client, None) or TokenBucket(*_rate_limits())
        self._buckets[client] = bucket
        while len(self._buckets) > self.max_clients:
            self._buckets.popitem(last=False)
        return bucket.take()


limiter = ClientRateLimiter(int(os.getenv("RATE_LIMIT_MAX_CLIENTS", "1024")))

tool_server = mcp_server.build_server()

app = FastAPI(title=f"{SERVER_NAME} remote transport", version=SERVER_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


async def _no_outbound(_message: dict) -> None:
    raise RuntimeError("HTTP /rpc cannot send requests to the client")


@app.get("/health")
async def health():
    return {"status": "ok", "server": SERVER_NAME, "version": SERVER_VERSION,
            "tools": [d.name for d in tool_server.list_tools()]}


@app.get("/metrics")
async def metrics():
    return Response(content=metrics_payload_bytes(), media_type="text/plain; version=0.0.4")


@app.post("/rpc")
async def rpc_endpoint(payload: dict, request: Request, authorization: Optional[str] = Header(None)):
    if not _remote_enabled():
        raise HTTPException(status_code=403, detail="Remote access disabled")
    if not _authorized(_bearer(authorization)):
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not limiter.take(request.client.host if request.client else "unknown"):
        raise HTTPException(status_code=429, detail="Rate limit exceeded")

    # Stateless: one request per POST, so tools never get an elicitation channel here
    if "method" not in payload:
        return JSONResponse({"jsonrpc": "2.0", "id": payload.get("id"),
                             "error": {"code": -32600, "message": "Invalid Request"}}, status_code=400)
    if "id" not in payload:
        return Response(status_code=202)
    session = McpSession(tool_server, _no_outbound)
    return JSONResponse(await session.handle_request(payload))


@app.websocket("/ws")
async def ws_endpoint(ws: WebSocket):
    if not _remote_enabled():
        await ws.close(code=4403)
        return
    # Token arrives as ?token= on the upgrade request
    if not _authorized(ws.query_params.get("token")):
        await ws.close(code=4401)
        return
    await ws.accept()

    async def _send(obj: dict) -> None:
        await ws.send_text(json.dumps(obj, ensure_ascii=False))

    session = McpSession(tool_server, _send)
    bucket = TokenBucket(*_rate_limits())
    try:
        while True:
            data = await ws.receive_text()
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                await _send({"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}})
                continue
            # Only client-initiated messages are limited; answers to our own requests always go through.
            if isinstance(payload, dict) and "method" in payload and not bucket.take():
                if "id" in payload:
                    await _send({"jsonrpc": "2.0", "id": payload["id"],
                                 "error": {"code": 429, "message": "Rate limit exceeded"}})
                continue
            await session.receive(payload)
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        await session.close()


# Entrypoint helper
async def serve():
    if not _remote_enabled():
        logger.warning("Remote endpoints disabled (REMOTE_ENABLED=false)")
        return
    host, port = REMOTE_BIND.split(":", 1)
    import uvicorn
    config = uvicorn.Config(app, host=host, port=int(port), log_level="info")
    await uvicorn.Server(config).serve()


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=load_config()["log_level"], stream=sys.stderr)
    asyncio.run(serve())
