# src/task_mirror/remote/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any

from ..core.ports import ErrorCallback, RemoteDocument, SnapshotCallback, Subscription
from ..errors import RemoteStoreError
from .common import SERVER_TIMESTAMP, is_server_timestamp
from .polling import PollingSubscription

logger = logging.getLogger(__name__)

GROUP_CODE_FIELD = "groupCode"


class SQLiteRemoteTaskStore:
    """
    SQLite-backed document store that plays the remote source of truth.

    Records are schemaless JSON documents keyed by a string id; only groupCode is
    mirrored into its own column for filtering. The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection and runs in a worker thread

    Subscriptions poll the table; writes made through this instance wake them at once,
    writes from other processes show up on the next poll.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, poll_interval_seconds: float = 2.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._poll_interval = float(poll_interval_seconds)
        self._subscriptions: list[PollingSubscription] = []
        self._ensure_schema()
        try:
            total = self.count_records()
        except Exception:
            total = -1
        logger.info("SQLiteRemoteTaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    group_code TEXT NOT NULL DEFAULT '',
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SQLiteRemoteTaskStore migration: added column %s", name)

            add_col("group_code", "TEXT NOT NULL DEFAULT ''")
            add_col("data", "TEXT NOT NULL DEFAULT '{}'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_group ON tasks(group_code, created_at)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _data_to_str(data: dict[str, Any]) -> str:
        return json.dumps(data, ensure_ascii=False)

    @staticmethod
    def _str_to_data(s: str | None) -> dict[str, Any]:
        if not s:
            return {}
        try:
            val = json.loads(s)
            return val if isinstance(val, dict) else {}
        except Exception:
            logger.warning("Corrupt task document JSON; treating as empty")
            return {}

    @staticmethod
    def _resolve(fields: dict[str, Any], now: float) -> dict[str, Any]:
        return {k: (now if is_server_timestamp(v) else v) for k, v in fields.items()}

    def _wake_subscriptions(self) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]
        for sub in self._subscriptions:
            sub.wake()

    # ---- sync API (also usable from scripts) ----

    def count_records(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def list_group(self, group_code: str) -> list[RemoteDocument]:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "SELECT id, data FROM tasks WHERE group_code = ? ORDER BY created_at ASC, rowid ASC",
                (group_code,),
            )
            return [RemoteDocument(id=row["id"], data=self._str_to_data(row["data"])) for row in cur.fetchall()]
        finally:
            conn.close()

    def get_record(self, task_id: str) -> dict[str, Any] | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT data FROM tasks WHERE id = ?", (task_id,)).fetchone()
            return self._str_to_data(row["data"]) if row else None
        finally:
            conn.close()

    def insert_record(self, fields: dict[str, Any], *, task_id: str | None = None) -> str:
        now = time.time()
        data = self._resolve(fields, now)
        task_id = task_id or uuid.uuid4().hex
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO tasks(id, group_code, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (task_id, str(data.get(GROUP_CODE_FIELD) or ""), self._data_to_str(data), now, now),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise RemoteStoreError(f"Task already exists: {task_id}") from e
        finally:
            conn.close()
        logger.debug("Record added id=%s group=%s", task_id, data.get(GROUP_CODE_FIELD))
        return task_id

    def update_record(self, task_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        now = time.time()
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT data FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                raise RemoteStoreError(f"No task to update: {task_id}", status_code=404)

            data = self._str_to_data(row["data"])
            data.update(self._resolve(fields, now))
            conn.execute(
                "UPDATE tasks SET data = ?, group_code = ?, updated_at = ? WHERE id = ?",
                (self._data_to_str(data), str(data.get(GROUP_CODE_FIELD) or ""), now, task_id),
            )
            conn.commit()
        finally:
            conn.close()

    def remove_record(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    # ---- RemoteTaskStore (async) ----

    async def subscribe(
            self,
            group_code: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
    ) -> Subscription:
        async def _fetch() -> list[RemoteDocument]:
            return await asyncio.to_thread(self.list_group, group_code)

        sub = PollingSubscription(
            f"sqlite:{group_code}",
            _fetch,
            on_snapshot,
            on_error,
            interval_seconds=self._poll_interval,
        )
        await sub.start()
        self._subscriptions.append(sub)
        return sub

    async def write_fields(self, task_id: str, fields: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self.update_record, task_id, dict(fields))
        except sqlite3.Error as e:
            raise RemoteStoreError(f"SQLite write failed for {task_id}: {e}") from e
        self._wake_subscriptions()

    async def delete_record(self, task_id: str) -> None:
        try:
            await asyncio.to_thread(self.remove_record, task_id)
        except sqlite3.Error as e:
            raise RemoteStoreError(f"SQLite delete failed for {task_id}: {e}") from e
        self._wake_subscriptions()

    async def create_record(self, fields: dict[str, Any]) -> str:
        try:
            task_id = await asyncio.to_thread(self.insert_record, dict(fields))
        except sqlite3.Error as e:
            raise RemoteStoreError(f"SQLite insert failed: {e}") from e
        self._wake_subscriptions()
        return task_id

    def server_timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    async def aclose(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
