from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .schema import Schema

logger = logging.getLogger(__name__)

ELICIT_METHOD = "elicitation/create"


class ElicitationError(Exception):
    """Raised when the caller answers an elicitation with an error or garbage."""


class ElicitAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ElicitRequest:
    message: str
    requested_schema: Schema

    def to_params(self) -> Dict[str, Any]:
        return {"message": self.message, "requestedSchema": self.requested_schema.to_json()}


@dataclass(frozen=True)
class ElicitResult:
    """Tagged outcome of an elicitation. ``content`` is only set on accept."""

    action: ElicitAction
    content: Optional[Dict[str, Any]] = None

    @property
    def accepted(self) -> bool:
        return self.action is ElicitAction.ACCEPT

    @classmethod
    def from_json(cls, payload: Any) -> "ElicitResult":
        if not isinstance(payload, Mapping):
            raise ElicitationError(f"Malformed elicitation response: {payload!r}")
        try:
            action = ElicitAction(payload.get("action"))
        except ValueError:
            raise ElicitationError(f"Unknown elicitation action: {payload.get('action')!r}") from None
        content = payload.get("content")
        if action is not ElicitAction.ACCEPT:
            return cls(action)
        if content is not None and not isinstance(content, Mapping):
            raise ElicitationError("Elicitation content must be an object")
        return cls(action, dict(content) if content is not None else None)


class ElicitationChannel(ABC):
    """Lets a running tool ask the caller's user for structured input."""

    @abstractmethod
    async def elicit(self, request: ElicitRequest) -> ElicitResult:
        """Send the prompt and wait for exactly one answer."""


SendRequest = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class SessionElicitationChannel(ElicitationChannel):
    """Elicitation over a JSON-RPC session.

    ``send_request`` issues an outbound request and resolves with the caller's
    ``result`` payload. When ``timeout`` (seconds) elapses first, the outcome
    is treated as a cancel.
    """

    def __init__(self, send_request: SendRequest, timeout: Optional[float] = None) -> None:
        self._send_request = send_request
        self.timeout = timeout if timeout and timeout > 0 else None

    async def elicit(self, request: ElicitRequest) -> ElicitResult:
        logger.debug("Elicitation request: %s", request.message)
        try:
            payload = await asyncio.wait_for(
                self._send_request(ELICIT_METHOD, request.to_params()), self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Elicitation timed out after %ss; treating as cancel", self.timeout)
            return ElicitResult(ElicitAction.CANCEL)
        result = ElicitResult.from_json(payload)
        logger.debug("Elicitation answered: %s", result.action.value)
        return result
