"""
Exchange committer: writes a finished exchange to the log.
Called once per exchange, only after the full reply is known.
"""

from __future__ import annotations

import logging

from mindlink.errors import CommitError, StorageError
from mindlink.storage.models import Turn
from mindlink.storage.sqlite_store import ConversationStore

logger = logging.getLogger(__name__)


def commit_exchange(store: ConversationStore, prompt: str, reply: str) -> tuple[Turn, Turn]:
    """Append the user prompt then the reply as one atomic pair."""
    try:
        return store.append_exchange(prompt, reply)
    except StorageError as e:
        logger.error("Failed to save exchange to %s: %s", store.db_path, e)
        raise CommitError(f"Reply received but not saved to memory: {e}", reply) from e
