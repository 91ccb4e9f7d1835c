"""
Tests for the SQLite conversation store.
Uses a temp database for each test.
"""

import sqlite3
from datetime import timezone

import pytest

from mindlink.errors import StorageError
from mindlink.storage.sqlite_store import ConversationStore


def test_append_and_read_back(store):
    """Append a turn and get it back."""
    turn = store.append("user", "hello world")

    turns = store.last_turns(10)
    assert len(turns) == 1
    assert turns[0] == turn
    assert turns[0].role == "user"
    assert turns[0].content == "hello world"
    assert turns[0].timestamp.tzinfo is not None


def test_last_turns_oldest_first(store):
    """last_turns returns the most recent N in chronological order."""
    for i in range(5):
        store.append("user" if i % 2 == 0 else "assistant", f"msg{i}")

    turns = store.last_turns(3)
    assert [t.content for t in turns] == ["msg2", "msg3", "msg4"]
    ids = [t.id for t in turns]
    assert ids == sorted(ids)
    assert len(set(ids)) == 3


@pytest.mark.parametrize("limit", [1, 2, 4, 7, 100])
def test_last_turns_bounded(store, limit):
    """Never more than limit entries; everything once limit >= total."""
    for i in range(7):
        store.append("user", f"m{i}")

    turns = store.last_turns(limit)
    assert len(turns) == min(limit, 7)
    assert all(a.id < b.id for a, b in zip(turns, turns[1:]))


def test_last_turns_zero_limit(store):
    store.append("user", "hi")
    assert store.last_turns(0) == []


def test_last_turns_empty_store(store):
    assert store.last_turns(5) == []


def test_append_gets_newest_id(store):
    """A new turn is the most recent entry with an id above all prior ids."""
    before = [store.append("user", f"m{i}") for i in range(3)]
    new = store.append("assistant", "latest")

    assert new.id > max(t.id for t in before)
    assert store.last_turns(10)[-1] == new


def test_append_exchange_writes_pair_in_order(store):
    store.append("system", "be brief")
    user, assistant = store.append_exchange("how are you", "fine")

    turns = store.last_turns(10)
    assert [(t.role, t.content) for t in turns[-2:]] == [("user", "how are you"), ("assistant", "fine")]
    assert assistant.id == user.id + 1


def test_append_rejects_unknown_role(store):
    with pytest.raises(ValueError):
        store.append("tool", "nope")
    assert store.count() == 0


def test_clear_empties_log(store):
    for i in range(4):
        store.append("user", f"m{i}")

    store.clear()
    assert store.last_turns(10) == []
    assert store.count() == 0


def test_ids_keep_increasing_after_clear(store):
    """Ids are never reused, even after a clear."""
    last = store.append("user", "before")
    store.clear()
    after = store.append("user", "after")
    assert after.id > last.id


def test_log_persists_across_opens(tmp_path):
    """A reopened store sees turns written by an earlier one."""
    db = str(tmp_path / "memory.db")
    ConversationStore.open(db).append_exchange("hi", "hello")

    turns = ConversationStore.open(db).last_turns(5)
    assert [(t.role, t.content) for t in turns] == [("user", "hi"), ("assistant", "hello")]


def test_open_creates_schema_idempotently(tmp_path):
    """Opening twice doesn't crash and the table exists."""
    db = str(tmp_path / "nested" / "memory.db")
    ConversationStore(db)
    s2 = ConversationStore(db)
    with s2._connect() as conn:
        columns = [row["name"] for row in conn.execute("PRAGMA table_info(turns)").fetchall()]
    assert columns == ["id", "role", "content", "timestamp"]


def test_open_corrupt_file_raises(tmp_path):
    db = tmp_path / "memory.db"
    db.write_bytes(b"this is definitely not a sqlite database" * 100)
    with pytest.raises(StorageError):
        ConversationStore.open(str(db))


def test_open_unwritable_location_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(StorageError):
        ConversationStore.open(str(blocker / "sub" / "memory.db"))


def test_open_read_only_database_raises(tmp_path, monkeypatch):
    """An existing log that cannot be written is rejected at open, not at first append."""
    db = tmp_path / "memory.db"
    ConversationStore.open(str(db)).append("user", "hi")

    real_connect = sqlite3.connect

    def read_only(path, *args, **kwargs):
        return real_connect(f"file:{path}?mode=ro", *args, uri=True, **kwargs)

    monkeypatch.setattr(sqlite3, "connect", read_only)
    with pytest.raises(StorageError):
        ConversationStore.open(str(db))


def test_append_io_failure_raises_storage_error(store):
    """sqlite errors surface as StorageError."""
    with store._connect() as conn:
        conn.execute("DROP TABLE turns")
    with pytest.raises(StorageError):
        store.append("user", "lost")


def test_timestamps_are_utc(store):
    turn = store.append("user", "hi")
    assert turn.timestamp.utcoffset() == timezone.utc.utcoffset(None)


def test_stats(store):
    store.append("system", "s")
    store.append_exchange("q1", "a1")
    store.append_exchange("q2", "a2")

    stats = store.get_stats()
    assert stats["turns"] == 5
    assert stats["user_turns"] == 2
    assert stats["assistant_turns"] == 2
    assert stats["system_turns"] == 1
    assert stats["first"] <= stats["last"]


def test_export_all_json(store):
    store.append_exchange("hello", "hi")

    export = store.export_all_json()
    assert len(export) == 2
    assert export[0]["role"] == "user"
    assert export[0]["content"] == "hello"
    assert export[1]["role"] == "assistant"
    assert export[0]["id"] < export[1]["id"]
    assert "timestamp" in export[0]
