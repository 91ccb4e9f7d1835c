"""
Context builder: turns a slice of stored history plus a new prompt into the
messages array for a chat completion request.

Pure function. The caller fetches history (normally store.last_turns(window))
before the request goes out, so a prompt never sees its own turns.
"""

from __future__ import annotations

from typing import Sequence

from mindlink.storage.models import Turn


def build_messages(history: Sequence[Turn], prompt: str) -> list[dict]:
    """Copy each turn verbatim as {role, content} and append the prompt as a user message."""
    messages = [turn.to_message() for turn in history]
    messages.append({"role": "user", "content": prompt})
    return messages
