"""
Document store for full employee records.

SQLite file (data/hr_database.db by default). Table per collection: (employee_id, record JSON).
Lookups run in a worker thread; the lookup tool awaits many of them concurrently.
"""

import asyncio
import json
import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, Protocol

from app.core.config import EMPLOYEE_COLLECTION, EMPLOYEE_DB_PATH
from app.schemas.employee import EmployeeRecord

logger = logging.getLogger(__name__)

_ROOT = Path(__file__).resolve().parent.parent.parent


class DocumentStore(Protocol):
    async def find_by_id(self, employee_id: str) -> dict[str, Any] | None: ...


class EmployeeStore:
    def __init__(self, path: str | Path = EMPLOYEE_DB_PATH, collection: str = EMPLOYEE_COLLECTION) -> None:
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", collection):
            raise ValueError(f"Invalid collection name: {collection!r}")
        p = Path(path)
        self.path = p if p.is_absolute() else _ROOT / p
        self.collection = collection
        self._init_lock = threading.Lock()
        self._initialized = False

    def _get_conn(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.path))

    def init_db(self) -> None:
        """Create the collection table if it does not exist."""
        conn = self._get_conn()
        try:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.collection} (
                    employee_id TEXT PRIMARY KEY,
                    record TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()
        self._initialized = True

    def _ensure_db(self) -> None:
        """Create the table once per store; concurrent lookups then only read."""
        if self._initialized:
            return
        with self._init_lock:
            if not self._initialized:
                self.init_db()

    def find_by_id_sync(self, employee_id: str) -> dict[str, Any] | None:
        self._ensure_db()
        conn = self._get_conn()
        try:
            row = conn.execute(
                f"SELECT record FROM {self.collection} WHERE employee_id = ?", (employee_id,)
            ).fetchone()
        finally:
            conn.close()
        return json.loads(row[0]) if row else None

    async def find_by_id(self, employee_id: str) -> dict[str, Any] | None:
        """Return the stored record as a dict, or None when not found."""
        record = await asyncio.to_thread(self.find_by_id_sync, employee_id)
        logger.debug("[employee_store:find_by_id] employee_id=%s found=%s", employee_id, record is not None)
        return record

    def replace_all(self, records: Iterable[EmployeeRecord]) -> int:
        """Delete every record in the collection and insert `records`. Used by the seeding script."""
        rows = [(r.employee_id, r.model_dump_json()) for r in records]
        self._ensure_db()
        conn = self._get_conn()
        try:
            with conn:
                conn.execute(f"DELETE FROM {self.collection}")
                conn.executemany(f"INSERT INTO {self.collection} (employee_id, record) VALUES (?, ?)", rows)
        finally:
            conn.close()
        logger.info("[employee_store:replace_all] stored %d records in %s", len(rows), self.collection)
        return len(rows)

    def count(self) -> int:
        self._ensure_db()
        conn = self._get_conn()
        try:
            return conn.execute(f"SELECT COUNT(*) FROM {self.collection}").fetchone()[0]
        finally:
            conn.close()
