"""
Data models for the conversation log.
A Turn is one persisted utterance; it never changes once written.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

ROLES = ("user", "assistant", "system")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp, normalizing to UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Turn:
    """A single logged turn."""
    id: int
    role: str            # "user", "assistant", "system"
    content: str
    timestamp: datetime

    def to_message(self) -> dict:
        """Export in OpenAI messages array format."""
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
