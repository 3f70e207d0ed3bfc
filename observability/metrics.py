"""
Prometheus metrics for tool calls and elicitation outcomes.
Metrics live in a dedicated registry so tests and embedding apps stay isolated.
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from core.config import env_flag

# Single registry for the process
_REGISTRY: Optional[CollectorRegistry] = None

# Metrics objects
TOOL_CALLS_TOTAL: Optional[Counter] = None
TOOL_LATENCY: Optional[Histogram] = None
ELICITATIONS_TOTAL: Optional[Counter] = None


def _get_registry() -> CollectorRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = CollectorRegistry()
    return _REGISTRY


def init_metrics():
    global TOOL_CALLS_TOTAL, TOOL_LATENCY, ELICITATIONS_TOTAL
    if TOOL_CALLS_TOTAL is not None:
        return
    reg = _get_registry()
    TOOL_CALLS_TOTAL = Counter("mcp_tool_calls_total", "Tool invocations by tool and outcome", ["tool", "outcome"], registry=reg)
    TOOL_LATENCY = Histogram("mcp_tool_latency_seconds", "Tool invocation latency, elicitation wait included", ["tool"], registry=reg)
    ELICITATIONS_TOTAL = Counter("mcp_elicitations_total", "Elicitation outcomes by tool and action", ["tool", "action"], registry=reg)


# Initialize eagerly if enabled
if env_flag("METRICS_ENABLED", "1"):
    init_metrics()


def record_tool_result(tool: str, success: bool, latency_ms: int):
    if TOOL_CALLS_TOTAL is None or TOOL_LATENCY is None:
        return
    outcome = "success" if success else "failure"
    TOOL_CALLS_TOTAL.labels(tool=tool, outcome=outcome).inc()
    TOOL_LATENCY.labels(tool=tool).observe(max(0.0, latency_ms / 1000.0))


def record_elicitation(tool: str, action: str):
    if ELICITATIONS_TOTAL is None:
        return
    ELICITATIONS_TOTAL.labels(tool=tool, action=action).inc()


def metrics_payload_bytes() -> bytes:
    if TOOL_CALLS_TOTAL is None:
        return b""
    return generate_latest(_get_registry())
