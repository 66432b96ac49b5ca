# src/tracker_sync/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ..core.errors import RemoteCallError

logger = logging.getLogger(__name__)

_COLUMNS: tuple[str, ...] = (
    "id",
    "user_id",
    "title",
    "description",
    "status",
    "start_date",
    "completion_date",
    "creation_date",
)
_WRITABLE: frozenset[str] = frozenset(_COLUMNS) - {"id"}


class TaskStore:
    """
    SQLite task store: the local stand-in for the relational backend.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Errors:
    - sqlite3.Error is re-raised as RemoteCallError so callers see one failure shape
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except RemoteCallError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    start_date TEXT,
                    completion_date TEXT,
                    creation_date TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("user_id", "TEXT")
            add_col("description", "TEXT")
            add_col("status", "TEXT NOT NULL DEFAULT 'pending'")
            add_col("start_date", "TEXT")
            add_col("completion_date", "TEXT")
            add_col("creation_date", "TEXT NOT NULL DEFAULT ''")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_creation ON tasks(creation_date)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> dict[str, Any]:
        return {name: row[name] for name in _COLUMNS}

    @staticmethod
    def _clean_values(values: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(values) - _WRITABLE
        if unknown:
            raise RemoteCallError(f"Unknown column(s): {', '.join(sorted(unknown))}", status_code=400)
        return dict(values)

    # ---- public API ----

    def count_tasks(self) -> int:
        try:
            conn = self._get_conn()
            try:
                (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
                return int(n)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e

    def list_tasks(self, *, order_by: str = "creation_date", descending: bool = True) -> list[dict[str, Any]]:
        if order_by not in _COLUMNS:
            raise RemoteCallError(f"Cannot order by unknown column: {order_by}", status_code=400)
        direction = "DESC" if descending else "ASC"
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute(f"SELECT * FROM tasks ORDER BY {order_by} {direction}, rowid {direction}")
                return [self._row_to_record(r) for r in cur.fetchall()]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),)).fetchone()
                return self._row_to_record(row) if row else None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e

    def add_task(self, values: Mapping[str, Any]) -> dict[str, Any]:
        clean = self._clean_values(values)
        if not str(clean.get("title") or "").strip():
            raise RemoteCallError("title is required", status_code=400)

        task_id = uuid.uuid4().hex
        clean["id"] = task_id
        clean.setdefault("status", "pending")
        clean.setdefault("creation_date", "")

        names = list(clean)
        placeholders = ", ".join("?" for _ in names)
        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    f"INSERT INTO tasks({', '.join(names)}) VALUES ({placeholders})",
                    [clean[n] for n in names],
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e

        logger.debug("Task added id=%s status=%s", task_id, clean.get("status"))
        record = self.get_task(task_id)
        if record is None:
            raise RemoteCallError("Inserted task disappeared")
        return record

    def update_task_fields(self, task_id: str, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Change only the supplied columns. Returns None when no row has this id."""
        clean = self._clean_values(values)
        if not clean:
            return self.get_task(task_id)

        fields = [f"{name} = ?" for name in clean]
        params = [*clean.values(), str(task_id)]
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
                conn.commit()
                if cur.rowcount == 0:
                    return None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e

        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        try:
            conn = self._get_conn()
            try:
                cur = conn.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
                conn.commit()
                return cur.rowcount == 1
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise RemoteCallError(f"SQLite error: {e}") from e
