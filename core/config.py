from __future__ import annotations

import os
from typing import Any, Dict

SERVER_NAME = "ice-cream-topping-recommender"
SERVER_VERSION = "1.0.0"

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def load_config() -> Dict[str, Any]:
    """Read server settings from the environment."""
    return {
        "protocol_version": os.getenv("PROTOCOL_VERSION", "2025-06-18"),
        "elicitation_timeout": float(os.getenv("ELICITATION_TIMEOUT", "600")),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "metrics_enabled": env_flag("METRICS_ENABLED", "1"),
        "metrics_exporter": env_flag("METRICS_EXPORTER", "0"),
        "metrics_bind": os.getenv("METRICS_BIND", "127.0.0.1:9099"),
    }
