"""
Streaming completion client.

Runs one exchange against the completion endpoint:

    CONNECTING ─► STREAMING ─► DONE
         │            │
         └────────────┴─► RETRYABLE (rate limited) ─► backoff, new attempt
                      └─► FATAL (anything else)    ─► raise

Rate-limited attempts are retried up to settings.max_retries times with a
linear backoff plus jitter. When the budget is spent, one non-streaming
request is made instead and its reply is the result.

Each attempt collects its own fragments; text from a failed attempt never
reaches the result.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import random
from contextlib import aclosing
from typing import Sequence

from mindlink.backends.base import BaseBackend
from mindlink.config import Settings
from mindlink.errors import DecodeFailure, MissingCredential, RateLimited, error_from_payload
from mindlink.sinks import OutputSink

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
JITTER_MS = 250


class AttemptState(enum.Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DONE = "done"
    RETRYABLE = "retryable"
    FATAL = "fatal"


def parse_delta(payload: str) -> str | None:
    """
    Extract choices[0].delta.content from one stream chunk.
    Returns None for chunks without content (role headers, finish markers, usage).
    Raises DecodeFailure for payloads that are not a chunk object, and the
    matching BackendError for in-band error objects.
    """
    try:
        chunk = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeFailure(payload) from e
    if not isinstance(chunk, dict):
        raise DecodeFailure(payload)

    if isinstance(chunk.get("error"), dict):
        raise error_from_payload(chunk["error"])

    choices = chunk.get("choices")
    if not isinstance(choices, list):
        raise DecodeFailure(payload)
    if not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        raise DecodeFailure(payload)
    delta = first.get("delta") or {}
    if not isinstance(delta, dict):
        raise DecodeFailure(payload)
    content = delta.get("content")
    if content is None:
        return None
    if not isinstance(content, str):
        raise DecodeFailure(payload)
    return content


class CompletionClient:
    """Resilient streaming client for a single backend."""

    def __init__(self, backend: BaseBackend, settings: Settings):
        self.backend = backend
        self.settings = settings

    def check_credential(self):
        if not self.settings.api_key:
            raise MissingCredential(
                f"No API key configured for provider '{self.settings.provider}' "
                "(set OPENAI_API_KEY)"
            )

    def build_request(self, messages: Sequence[dict], stream: bool = True) -> dict:
        return {
            "model": self.settings.model,
            "messages": [dict(m) for m in messages],
            "stream": stream,
        }

    def backoff_seconds(self, attempt: int) -> float:
        """Linear backoff for attempt N, plus up to JITTER_MS of jitter."""
        jitter_ms = random.uniform(0, JITTER_MS)
        return (self.settings.base_backoff_ms * attempt + jitter_ms) / 1000

    async def complete(self, messages: Sequence[dict], sink: OutputSink) -> str:
        """Run one exchange and return the full reply text."""
        self.check_credential()
        body = self.build_request(messages, stream=True)
        max_retries = self.settings.max_retries

        attempt = 0
        while True:
            attempt += 1
            try:
                text = await self._stream_attempt(body, sink, attempt)
                break
            except RateLimited as e:
                sink.reset()
                if attempt <= max_retries:
                    delay = self.backoff_seconds(attempt)
                    logger.warning(
                        "Rate limited (%s), retry in %.2fs (%d/%d)",
                        e, delay, attempt, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue

                logger.warning(
                    "Stream failed after %d retries; falling back to non-streaming request",
                    attempt - 1,
                )
                text = await self._complete_once(messages, sink)
                break

        sink.finish()
        return text

    async def _stream_attempt(self, body: dict, sink: OutputSink, attempt: int) -> str:
        fragments: list[str] = []
        state = AttemptState.CONNECTING
        logger.debug("Attempt %d: %s %s", attempt, state.value, self.backend.name)

        try:
            async with aclosing(self.backend.forward_stream(body)) as events:
                async for payload in events:
                    state = AttemptState.STREAMING
                    if payload.strip() == DONE_SENTINEL:
                        break
                    try:
                        piece = parse_delta(payload)
                    except DecodeFailure as e:
                        logger.debug("Skipping payload: %s", e)
                        continue
                    if piece:
                        sink.write(piece)
                        fragments.append(piece)
        except RateLimited:
            state = AttemptState.RETRYABLE
            logger.debug("Attempt %d ended %s after %d fragments", attempt, state.value, len(fragments))
            raise
        except Exception:
            state = AttemptState.FATAL
            logger.debug("Attempt %d ended %s", attempt, state.value)
            raise

        state = AttemptState.DONE
        logger.debug("Attempt %d %s: %d fragments", attempt, state.value, len(fragments))
        return "".join(fragments)

    async def _complete_once(self, messages: Sequence[dict], sink: OutputSink) -> str:
        """Non-streaming fallback. Any failure here is final."""
        body = self.build_request(messages, stream=False)
        response = await self.backend.forward(body)
        if not response.ok:
            logger.error("Fallback request failed: %s", response.error)
            raise response.to_error()
        text = response.content
        if text:
            sink.write(text)
        return text
