"""
Memory location resolution.
Project mode keeps the log beside the code you are working on; global mode
shares one log from the home directory.
"""

from __future__ import annotations

from pathlib import Path

MEMORY_DIR = ".mindlink"
MEMORY_FILE = "memory.db"


def memory_path(project_mode: bool = True, cwd: Path | None = None, home: Path | None = None) -> Path:
    """Return the memory database path, creating its directory."""
    if project_mode:
        root = cwd or Path.cwd()
    else:
        root = home or Path.home()
    directory = root / MEMORY_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass  # reported as a StorageError when the store opens
    return directory / MEMORY_FILE
