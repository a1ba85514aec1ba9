"""Local draft cache for in-progress edit documents.

Keeps the editor's latest snapshot per project in a local SQLite file so an
unsubmitted edit survives a reload. The cache is a recovery aid only: the
project's stored edit document always wins once it exists, and cache errors
never reach the user. They are logged and reported to ``on_error`` instead.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from viralyzer.config import get_settings

logger = logging.getLogger(__name__)

# on_error(operation, project_id, exception)
ErrorHook = Callable[[str, str, Exception], None]


class DraftCache:
    """Per-project key-value store of edit document snapshots."""

    def __init__(self, path: str | Path, on_error: ErrorHook | None = None) -> None:
        self.path = Path(path)
        self.on_error = on_error
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            if str(self.path) != ":memory:":
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS timeline_cache (
                    project_id TEXT PRIMARY KEY,
                    document TEXT NOT NULL,
                    updated_at REAL NOT NULL DEFAULT (julianday('now'))
                )
                """
            )
            self._conn.commit()
        return self._conn

    def _report(self, operation: str, project_id: str, exc: Exception) -> None:
        logger.warning(
            f"Draft cache {operation} failed for project {project_id}: {exc}",
            extra={"cache_operation": operation, "project_id": project_id},
        )
        if self.on_error is not None:
            try:
                self.on_error(operation, project_id, exc)
            except Exception:
                logger.exception("Draft cache error hook raised")

    def save(self, project_id: Any, document: dict[str, Any]) -> None:
        """Store a snapshot. Never raises."""
        key = str(project_id)
        try:
            payload = json.dumps(document)
            with self._lock:
                conn = self._connect()
                conn.execute(
                    """
                    INSERT INTO timeline_cache (project_id, document, updated_at)
                    VALUES (?, ?, julianday('now'))
                    ON CONFLICT(project_id) DO UPDATE SET
                        document = excluded.document,
                        updated_at = excluded.updated_at
                    """,
                    (key, payload),
                )
                conn.commit()
        except (sqlite3.Error, TypeError, ValueError, OSError) as e:
            self._report("save", key, e)

    def load(self, project_id: Any) -> dict[str, Any] | None:
        """Return the cached snapshot, or None if absent or unreadable."""
        key = str(project_id)
        try:
            with self._lock:
                row = self._connect().execute(
                    "SELECT document FROM timeline_cache WHERE project_id = ?", (key,)
                ).fetchone()
        except (sqlite3.Error, OSError) as e:
            self._report("load", key, e)
            return None

        if row is None:
            return None
        try:
            document = json.loads(row[0])
        except ValueError as e:
            self._report("load", key, e)
            return None
        return document if isinstance(document, dict) else None

    def delete(self, project_id: Any) -> None:
        key = str(project_id)
        try:
            with self._lock:
                conn = self._connect()
                conn.execute("DELETE FROM timeline_cache WHERE project_id = ?", (key,))
                conn.commit()
        except (sqlite3.Error, OSError) as e:
            self._report("delete", key, e)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


_draft_cache: DraftCache | None = None


def get_draft_cache() -> DraftCache:
    global _draft_cache
    if _draft_cache is None:
        _draft_cache = DraftCache(get_settings().draft_cache_path)
    return _draft_cache
