"""
Output sinks: where streamed reply text goes while it arrives.
"""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class OutputSink(Protocol):
    def write(self, fragment: str) -> None: ...

    def reset(self) -> None: ...

    def finish(self) -> None: ...


class ConsoleSink:
    """Print fragments as they arrive, flushing after each one."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self._dirty = False

    def write(self, fragment: str) -> None:
        self.stream.write(fragment)
        self.stream.flush()
        self._dirty = True

    def reset(self) -> None:
        """Abandon a partial attempt: the next attempt starts on a fresh line."""
        if self._dirty:
            self.stream.write("\n")
            self.stream.flush()
            self._dirty = False

    def finish(self) -> None:
        self.stream.write("\n")
        self.stream.flush()
        self._dirty = False


class BufferSink:
    """Collect fragments in memory. Used for quiet runs and in tests."""

    def __init__(self):
        self.fragments: list[str] = []
        self.finished = 0
        self.resets = 0

    @property
    def text(self) -> str:
        return "".join(self.fragments)

    def write(self, fragment: str) -> None:
        self.fragments.append(fragment)

    def reset(self) -> None:
        self.fragments.clear()
        self.resets += 1

    def finish(self) -> None:
        self.finished += 1
