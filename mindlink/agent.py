"""
The agent: one conversation log, one backend, one exchange at a time.

    prompt → last N turns → messages → stream reply → commit (user, assistant)

History is read before the request goes out and the exchange is written only
after the reply is complete, so failed or cancelled attempts leave no trace
in the log.
"""

from __future__ import annotations

import logging

from mindlink.backends import create_backend
from mindlink.backends.base import BaseBackend
from mindlink.client import CompletionClient
from mindlink.committer import commit_exchange
from mindlink.config import Settings
from mindlink.context import build_messages
from mindlink.sinks import ConsoleSink, OutputSink
from mindlink.storage.models import Turn
from mindlink.storage.sqlite_store import ConversationStore

logger = logging.getLogger(__name__)


class Agent:
    """Persistent conversational agent."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        backend: BaseBackend | None = None,
    ):
        self.settings = settings
        self.store = store
        self.backend = backend or create_backend(settings)
        self.client = CompletionClient(self.backend, settings)

    @classmethod
    def from_settings(cls, settings: Settings, location: str) -> "Agent":
        """Open the log at location and build the configured backend."""
        backend = create_backend(settings)
        store = ConversationStore.open(location)
        return cls(settings, store, backend)

    async def ask(self, prompt: str, sink: OutputSink | None = None) -> str:
        """Run one exchange and commit it. Returns the reply text."""
        self.client.check_credential()
        history = self.store.last_turns(self.settings.memory_turns)
        messages = build_messages(history, prompt)
        logger.debug(
            "Asking %s with %d history turns", self.settings.model, len(history)
        )

        reply = await self.client.complete(messages, sink or ConsoleSink())
        commit_exchange(self.store, prompt, reply)
        return reply

    def memory_show(self, limit: int) -> list[Turn]:
        return self.store.last_turns(limit)

    def memory_clear(self) -> None:
        self.store.clear()
