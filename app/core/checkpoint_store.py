"""
Conversation checkpoints: per-thread message history that survives across requests.

Keyed by (namespace, thread_id). A save replaces the whole snapshot in one
transaction, so a load never observes a partial write. The agent keeps no
conversation cache of its own; this store is the only multi-turn memory.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from app.agent.messages import Message
from app.core.config import CHECKPOINT_DB_PATH, CHECKPOINT_NAMESPACE
from app.core.errors import CheckpointError

logger = logging.getLogger(__name__)

# Project root (two levels above app/core)
_ROOT = Path(__file__).resolve().parent.parent.parent
_TABLE = "checkpoints"


@dataclass(frozen=True)
class ConversationState:
    thread_id: str
    messages: tuple[Message, ...] = ()

    def append(self, *messages: Message) -> "ConversationState":
        return ConversationState(self.thread_id, self.messages + tuple(messages))


@dataclass(frozen=True)
class Checkpoint:
    namespace: str
    thread_id: str
    version: int
    updated_at: str
    messages: tuple[Message, ...] = field(default=())


class CheckpointStore(Protocol):
    async def load(self, thread_id: str) -> ConversationState: ...

    async def save(self, state: ConversationState) -> Checkpoint: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _encode(messages: tuple[Message, ...]) -> str:
    return json.dumps([m.to_dict() for m in messages], default=str)


def _decode(payload: str) -> tuple[Message, ...]:
    return tuple(Message.from_dict(m) for m in json.loads(payload or "[]"))


class InMemoryCheckpointStore:
    """Process-local store. Used in tests and local runs without a data dir."""

    def __init__(self, namespace: str = CHECKPOINT_NAMESPACE) -> None:
        self.namespace = namespace
        self._checkpoints: dict[str, Checkpoint] = {}
        self._lock = threading.Lock()

    async def load(self, thread_id: str) -> ConversationState:
        with self._lock:
            cp = self._checkpoints.get(thread_id)
        messages = cp.messages if cp else ()
        logger.info("[checkpoint:memory:load] thread_id=%s messages=%d", thread_id[:16], len(messages))
        return ConversationState(thread_id, messages)

    async def save(self, state: ConversationState) -> Checkpoint:
        with self._lock:
            prev = self._checkpoints.get(state.thread_id)
            cp = Checkpoint(
                namespace=self.namespace,
                thread_id=state.thread_id,
                version=(prev.version + 1) if prev else 1,
                updated_at=_now(),
                messages=tuple(state.messages),
            )
            self._checkpoints[state.thread_id] = cp
        logger.info("[checkpoint:memory:save] thread_id=%s version=%d messages=%d", state.thread_id[:16], cp.version, len(cp.messages))
        return cp

    def get_checkpoint(self, thread_id: str) -> Checkpoint | None:
        with self._lock:
            return self._checkpoints.get(thread_id)


class SQLiteCheckpointStore:
    """
    SQLite-backed store. Table: checkpoints (namespace, thread_id, version, messages, updated_at).

    Blocking sqlite3 calls run in a worker thread so the event loop stays free.
    """

    def __init__(self, path: str | Path = CHECKPOINT_DB_PATH, namespace: str = CHECKPOINT_NAMESPACE) -> None:
        p = Path(path)
        self.path = p if p.is_absolute() else _ROOT / p
        self.namespace = namespace
        self._lock = threading.Lock()
        self._initialized = False

    def _get_conn(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.path))

    def init_db(self) -> None:
        """Create the checkpoints table if it does not exist."""
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_TABLE} (
                    namespace TEXT NOT NULL,
                    thread_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    messages TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, thread_id)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()
        self._initialized = True

    def _ensure_db(self) -> None:
        if not self._initialized:
            self.init_db()

    def _load_sync(self, thread_id: str) -> tuple[Message, ...]:
        self._ensure_db()
        conn = self._get_conn()
        try:
            row = conn.execute(
                f"SELECT messages FROM {_TABLE} WHERE namespace = ? AND thread_id = ?",
                (self.namespace, thread_id),
            ).fetchone()
        finally:
            conn.close()
        return _decode(row[0]) if row else ()

    def _save_sync(self, state: ConversationState) -> Checkpoint:
        self._ensure_db()
        updated_at = _now()
        payload = _encode(state.messages)
        with self._lock:
            conn = self._get_conn()
            try:
                with conn:
                    conn.execute(
                        f"""
                        INSERT INTO {_TABLE} (namespace, thread_id, version, messages, updated_at)
                        VALUES (?, ?, 1, ?, ?)
                        ON CONFLICT (namespace, thread_id) DO UPDATE SET
                            version = version + 1,
                            messages = excluded.messages,
                            updated_at = excluded.updated_at
                        """,
                        (self.namespace, state.thread_id, payload, updated_at),
                    )
                    version = conn.execute(
                        f"SELECT version FROM {_TABLE} WHERE namespace = ? AND thread_id = ?",
                        (self.namespace, state.thread_id),
                    ).fetchone()[0]
            finally:
                conn.close()
        return Checkpoint(self.namespace, state.thread_id, version, updated_at, tuple(state.messages))

    async def load(self, thread_id: str) -> ConversationState:
        try:
            messages = await asyncio.to_thread(self._load_sync, thread_id)
        except (sqlite3.Error, OSError, ValueError) as e:
            raise CheckpointError(thread_id, str(e)) from e
        logger.info("[checkpoint:sqlite:load] thread_id=%s messages=%d", thread_id[:16], len(messages))
        return ConversationState(thread_id, messages)

    async def save(self, state: ConversationState) -> Checkpoint:
        try:
            cp = await asyncio.to_thread(self._save_sync, state)
        except (sqlite3.Error, OSError) as e:
            raise CheckpointError(state.thread_id, str(e)) from e
        logger.info("[checkpoint:sqlite:save] thread_id=%s version=%d messages=%d", state.thread_id[:16], cp.version, len(cp.messages))
        return cp
