"""
OpenAI chat completions backend.

Speaks POST /v1/chat/completions with a bearer key. Streaming responses are
server-sent events; each event's data is handed to the caller untouched,
including the final [DONE] sentinel.
"""

from __future__ import annotations

import json
import logging
import time
from typing import AsyncIterator

import httpx

from mindlink.backends.base import BaseBackend, BackendResponse
from mindlink.errors import TransportFailure, error_from_status

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://api.openai.com"


def _error_detail(text: str) -> str:
    """Pull the message out of an OpenAI error body, or fall back to raw text."""
    try:
        data = json.loads(text)
        if isinstance(data, dict) and isinstance(data.get("error"), dict):
            return str(data["error"].get("message") or "")[:200]
    except (json.JSONDecodeError, TypeError):
        pass
    return text[:200]


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Group SSE lines into events and yield each event's data.
    Multiple data: lines in one event are joined with newlines.
    Comments (":...") and other fields (event:, id:, retry:) are ignored.
    """
    data_lines: list[str] = []
    async for line in lines:
        if not line:
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)
    # Connection closed without a trailing blank line
    if data_lines:
        yield "\n".join(data_lines)


class OpenAIBackend(BaseBackend):
    """Backend for the OpenAI API (or anything that speaks the same protocol)."""

    def __init__(
        self,
        api_key: str = "",
        url: str = DEFAULT_URL,
        timeout: float = 120,
        name: str = "openai",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(name=name, url=url, timeout=timeout)
        self.api_key = api_key
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.url}/v1/chat/completions"

    def _headers(self) -> dict:
        """Build request headers with auth."""
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def forward(self, body: dict) -> BackendResponse:
        """Forward a non-streaming request."""
        t0 = time.monotonic()
        try:
            async with self._client() as client:
                resp = await client.post(self.endpoint, json=body, headers=self._headers())
                latency = (time.monotonic() - t0) * 1000

                if resp.status_code >= 400:
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error=_error_detail(resp.text),
                    )

                data = resp.json()
                if not isinstance(data, dict):
                    return BackendResponse(
                        ok=False,
                        status_code=resp.status_code,
                        backend_name=self.name,
                        latency_ms=latency,
                        error="malformed completion response",
                    )

                return BackendResponse(
                    ok=True,
                    status_code=resp.status_code,
                    data=data,
                    backend_name=self.name,
                    latency_ms=latency,
                )
        except httpx.TimeoutException:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Backend '%s' timed out after %.0fms", self.name, latency)
            return BackendResponse(
                ok=False,
                status_code=0,
                backend_name=self.name,
                latency_ms=latency,
                error=f"Timeout after {self.timeout}s",
            )
        except (httpx.HTTPError, ValueError) as e:
            latency = (time.monotonic() - t0) * 1000
            logger.warning("Backend '%s' failed: %s", self.name, e)
            return BackendResponse(
                ok=False,
                status_code=0,
                backend_name=self.name,
                latency_ms=latency,
                error=str(e) or e.__class__.__name__,
            )

    async def forward_stream(self, body: dict) -> AsyncIterator[str]:
        """Forward a streaming request, yielding SSE data payloads."""
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self.endpoint,
                    json=body,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        raise error_from_status(resp.status_code, _error_detail(resp.text))
                    async for data in iter_sse_data(resp.aiter_lines()):
                        yield data
        except httpx.TimeoutException as e:
            logger.warning("Backend '%s' stream timed out", self.name)
            raise TransportFailure(f"Timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning("Backend '%s' stream failed: %s", self.name, e)
            raise TransportFailure(str(e) or e.__class__.__name__) from e
