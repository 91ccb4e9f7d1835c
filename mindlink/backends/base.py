"""
Base backend abstraction.
A backend knows how to reach one completion endpoint, streaming or not.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from mindlink.errors import BackendError, TransportFailure, error_from_status

logger = logging.getLogger(__name__)


@dataclass
class BackendResponse:
    """Standardized non-streaming response."""
    ok: bool
    status_code: int = 200
    data: dict = field(default_factory=dict)
    backend_name: str = ""
    latency_ms: float = 0.0
    error: str = ""

    @property
    def content(self) -> str:
        """
        Extract assistant content from response data.
        Raises TransportFailure if the body is not a chat completion.
        """
        if not isinstance(self.data, dict):
            raise self._malformed()
        choices = self.data.get("choices", [])
        if not isinstance(choices, list):
            raise self._malformed()
        if not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            raise self._malformed()
        message = first.get("message", {})
        if not isinstance(message, dict):
            raise self._malformed()
        content = message.get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise self._malformed()
        return content

    def _malformed(self) -> TransportFailure:
        return TransportFailure("malformed completion response", self.status_code or None)

    def to_error(self) -> BackendError:
        """Turn a failed response into the matching exception."""
        if self.status_code and self.status_code >= 400:
            return error_from_status(self.status_code, self.error)
        return TransportFailure(self.error or "request failed", self.status_code or None)


class BaseBackend(abc.ABC):
    """Abstract base for completion backends."""

    def __init__(self, name: str, url: str, timeout: float = 120):
        self.name = name
        self.url = url.rstrip("/")
        self.timeout = timeout

    @abc.abstractmethod
    async def forward(self, body: dict) -> BackendResponse:
        """
        Send a non-streaming chat completion request.
        Never raises for HTTP or network failures; reports them in the response.
        """
        ...

    @abc.abstractmethod
    def forward_stream(self, body: dict) -> AsyncIterator[str]:
        """
        Send a streaming chat completion request.
        Yields the data payload of each server-sent event.
        Raises RateLimited or TransportFailure on failure.
        """
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} url={self.url!r}>"
