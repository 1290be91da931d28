"""
Tests for conversation checkpoints: SQLite (tmp_path) and in-memory stores.
"""

import sqlite3

import pytest

from app.agent.messages import Message, ToolCall, assistant_message, tool_message, user_message
from app.core.checkpoint_store import ConversationState, InMemoryCheckpointStore, SQLiteCheckpointStore
from app.core.errors import CheckpointError, ErrorKind

from conftest import run

CONVERSATION = (
    user_message("Find employees with Python skills"),
    assistant_message("", [ToolCall(id="call_1", name="employee_lookup", arguments={"query": "Python skills", "limit": 5})]),
    tool_message("call_1", '[{"score": 0.9, "summary": "Maya", "employee": null}]'),
    assistant_message("Maya Okafor knows Python."),
)


@pytest.fixture
def sqlite_store(tmp_path) -> SQLiteCheckpointStore:
    return SQLiteCheckpointStore(tmp_path / "checkpoints.db", namespace="test")


class TestSQLiteCheckpointStore:
    def test_unknown_thread_loads_empty(self, sqlite_store) -> None:
        state = run(sqlite_store.load("new-thread"))
        assert state == ConversationState("new-thread", ())

    def test_save_then_load_preserves_messages(self, sqlite_store) -> None:
        run(sqlite_store.save(ConversationState("t1", CONVERSATION)))
        loaded = run(sqlite_store.load("t1"))
        assert loaded.messages == CONVERSATION
        assert loaded.messages[1].tool_calls[0].arguments == {"query": "Python skills", "limit": 5}
        assert loaded.messages[2].tool_call_id == "call_1"

    def test_version_increments_per_save(self, sqlite_store) -> None:
        first = run(sqlite_store.save(ConversationState("t1", CONVERSATION[:1])))
        second = run(sqlite_store.save(ConversationState("t1", CONVERSATION)))
        assert (first.version, second.version) == (1, 2)
        assert second.namespace == "test"
        assert run(sqlite_store.load("t1")).messages == CONVERSATION

    def test_threads_are_isolated(self, sqlite_store) -> None:
        run(sqlite_store.save(ConversationState("a", CONVERSATION)))
        run(sqlite_store.save(ConversationState("b", CONVERSATION[:1])))
        assert len(run(sqlite_store.load("a")).messages) == 4
        assert len(run(sqlite_store.load("b")).messages) == 1

    def test_namespaces_are_isolated(self, tmp_path) -> None:
        path = tmp_path / "checkpoints.db"
        run(SQLiteCheckpointStore(path, namespace="one").save(ConversationState("t1", CONVERSATION)))
        assert run(SQLiteCheckpointStore(path, namespace="two").load("t1")).messages == ()

    def test_survives_new_store_instance(self, tmp_path) -> None:
        path = tmp_path / "checkpoints.db"
        run(SQLiteCheckpointStore(path).save(ConversationState("t1", CONVERSATION)))
        assert run(SQLiteCheckpointStore(path).load("t1")).messages == CONVERSATION

    def test_io_failure_raises_checkpoint_error(self, tmp_path) -> None:
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        store = SQLiteCheckpointStore(blocker / "checkpoints.db")
        with pytest.raises(CheckpointError) as exc_info:
            run(store.load("t1"))
        assert exc_info.value.kind is ErrorKind.WORKFLOW
        assert exc_info.value.thread_id == "t1"

    def test_corrupt_row_raises_checkpoint_error(self, sqlite_store) -> None:
        run(sqlite_store.save(ConversationState("t1", CONVERSATION)))
        conn = sqlite3.connect(str(sqlite_store.path))
        with conn:
            conn.execute("UPDATE checkpoints SET messages = 'not json' WHERE thread_id = 't1'")
        conn.close()
        with pytest.raises(CheckpointError):
            run(sqlite_store.load("t1"))


class TestInMemoryCheckpointStore:
    def test_roundtrip_and_version(self) -> None:
        store = InMemoryCheckpointStore(namespace="mem")
        assert run(store.load("t1")).messages == ()
        assert store.get_checkpoint("t1") is None
        run(store.save(ConversationState("t1", CONVERSATION[:2])))
        cp = run(store.save(ConversationState("t1", CONVERSATION)))
        assert cp.version == 2
        assert cp.namespace == "mem"
        assert store.get_checkpoint("t1").messages == CONVERSATION
        assert run(store.load("t1")).messages == CONVERSATION


class TestConversationState:
    def test_append_returns_new_state(self) -> None:
        state = ConversationState("t1")
        appended = state.append(user_message("hi"), assistant_message("hello"))
        assert state.messages == ()
        assert [m.content for m in appended.messages] == ["hi", "hello"]

    def test_message_dict_roundtrip_keeps_tool_fields(self) -> None:
        for m in CONVERSATION:
            assert Message.from_dict(m.to_dict()) == m
