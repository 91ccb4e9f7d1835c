"""
Shared fixtures: a temp conversation store, settings, and a scripted backend.
"""

import json

import pytest

from mindlink.backends.base import BaseBackend, BackendResponse
from mindlink.config import Settings
from mindlink.storage.sqlite_store import ConversationStore


def chunk(content=None, role=None, finish_reason=None) -> str:
    """One streamed chat.completion.chunk payload."""
    delta = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    return json.dumps({"choices": [{"delta": delta, "index": 0, "finish_reason": finish_reason}]})


def reply(content: str) -> BackendResponse:
    """A successful non-streaming response."""
    return BackendResponse(
        ok=True,
        data={"choices": [{"message": {"role": "assistant", "content": content}}]},
        backend_name="fake",
    )


class ScriptedBackend(BaseBackend):
    """
    Backend whose streaming attempts follow a script.
    Each attempt is a list of payload strings and/or exceptions; an exception
    is raised when reached. Attempts past the end of the script reuse the last one.
    """

    def __init__(self, attempts, fallback: BackendResponse | None = None):
        super().__init__(name="fake", url="http://fake")
        self.attempts = attempts
        self.fallback = fallback or reply("fallback reply")
        self.stream_bodies: list[dict] = []
        self.forward_bodies: list[dict] = []

    @property
    def stream_calls(self) -> int:
        return len(self.stream_bodies)

    async def forward(self, body):
        self.forward_bodies.append(body)
        return self.fallback

    async def forward_stream(self, body):
        index = min(len(self.stream_bodies), len(self.attempts) - 1)
        self.stream_bodies.append(body)
        for item in self.attempts[index]:
            if isinstance(item, BaseException):
                raise item
            yield item


@pytest.fixture
def store(tmp_path):
    """Fresh conversation store per test."""
    return ConversationStore(str(tmp_path / "memory.db"))


@pytest.fixture
def settings():
    return Settings(api_key="sk-test", model="gpt-test", max_retries=3, base_backoff_ms=10)
