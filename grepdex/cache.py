"""Durable key-value storage for index snapshots, backed by SQLite."""

from __future__ import annotations

import hashlib
import json
import os
import sqlite3
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol

DEFAULT_CACHE_DIR = Path(os.path.expanduser("~")) / ".grepdex"
CACHE_DIR = DEFAULT_CACHE_DIR
_CACHE_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "grepdex_cache_dir_override",
    default=None,
)
DB_FILENAME = "cache.db"


class KeyValueStore(Protocol):
    """Snapshot storage scoped to one workspace identity."""

    def get(self, key: str) -> dict[str, Any] | None:
        raise NotImplementedError  # pragma: no cover

    def set(self, key: str, value: Mapping[str, Any]) -> None:
        raise NotImplementedError  # pragma: no cover

    def delete(self, key: str) -> bool:
        raise NotImplementedError  # pragma: no cover


def workspace_fingerprint(name: str, root: Path | str) -> str:
    """Return a stable hash of the workspace identity (name + resolved root)."""

    base = f"{name}|{Path(root).expanduser().resolve()}"
    return hashlib.sha1(base.encode("utf-8")).hexdigest()


def _resolve_cache_dir() -> Path:
    override = _CACHE_DIR_OVERRIDE.get()
    return override if override is not None else CACHE_DIR


@contextmanager
def cache_dir_context(path: Path | str | None):
    """Temporarily override the cache directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CACHE_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CACHE_DIR_OVERRIDE.reset(token)


def set_cache_dir(path: Path | str | None) -> None:
    global CACHE_DIR
    if path is None:
        CACHE_DIR = DEFAULT_CACHE_DIR
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    CACHE_DIR = dir_path


def cache_db_path() -> Path:
    """Return the absolute path to the shared SQLite cache database."""

    return _resolve_cache_dir() / DB_FILENAME


def _connect(db_path: Path, *, query_only: bool = False) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    if query_only:
        conn.execute("PRAGMA query_only = ON;")
    return conn


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS snapshot (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            scope TEXT NOT NULL,
            cache_key TEXT NOT NULL,
            root_path TEXT NOT NULL DEFAULT '',
            file_count INTEGER NOT NULL DEFAULT 0,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(scope, cache_key)
        );

        CREATE INDEX IF NOT EXISTS idx_snapshot_lookup
            ON snapshot(scope, cache_key);
        """
    )


class MemorySnapshotStore:
    """Process-local store; snapshots are kept as JSON text to mimic persistence."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> dict[str, Any] | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Mapping[str, Any]) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class SqliteSnapshotStore:
    """Snapshot rows in the shared cache database, one per (scope, key)."""

    def __init__(
        self,
        scope: str,
        *,
        root_path: Path | str | None = None,
        db_path: Path | None = None,
    ) -> None:
        self.scope = scope
        self.root_path = str(root_path) if root_path is not None else ""
        self._db_path = db_path

    @property
    def db_path(self) -> Path:
        return self._db_path if self._db_path is not None else cache_db_path()

    def get(self, key: str) -> dict[str, Any] | None:
        db_path = self.db_path
        if not db_path.exists():
            return None
        conn = _connect(db_path, query_only=True)
        try:
            if not _table_exists(conn, "snapshot"):
                return None
            row = conn.execute(
                "SELECT payload FROM snapshot WHERE scope = ? AND cache_key = ?",
                (self.scope, key),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return json.loads(row["payload"])

    def set(self, key: str, value: Mapping[str, Any]) -> None:
        db_path = self.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(value, ensure_ascii=False)
        entries = value.get("entries")
        file_count = len(entries) if isinstance(entries, list) else 0
        updated_at = datetime.now(timezone.utc).isoformat()
        conn = _connect(db_path)
        try:
            _ensure_schema(conn)
            with conn:
                conn.execute(
                    """
                    INSERT INTO snapshot (scope, cache_key, root_path, file_count, payload, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(scope, cache_key) DO UPDATE SET
                        root_path = excluded.root_path,
                        file_count = excluded.file_count,
                        payload = excluded.payload,
                        updated_at = excluded.updated_at
                    """,
                    (self.scope, key, self.root_path, file_count, payload, updated_at),
                )
        finally:
            conn.close()

    def delete(self, key: str) -> bool:
        db_path = self.db_path
        if not db_path.exists():
            return False
        conn = _connect(db_path)
        try:
            _ensure_schema(conn)
            with conn:
                cursor = conn.execute(
                    "DELETE FROM snapshot WHERE scope = ? AND cache_key = ?",
                    (self.scope, key),
                )
            return cursor.rowcount > 0
        finally:
            conn.close()


def list_cache_entries() -> list[dict[str, object]]:
    """Return metadata for every cached snapshot currently stored."""

    db_path = cache_db_path()
    if not db_path.exists():
        return []

    try:
        conn = _connect(db_path, query_only=True)
    except sqlite3.OperationalError:
        return []
    try:
        if not _table_exists(conn, "snapshot"):
            return []
        rows = conn.execute(
            """
            SELECT scope, cache_key, root_path, file_count, updated_at
            FROM snapshot
            ORDER BY updated_at DESC
            """
        ).fetchall()
        return [
            {
                "scope": row["scope"],
                "cache_key": row["cache_key"],
                "root_path": row["root_path"],
                "file_count": int(row["file_count"] or 0),
                "updated_at": row["updated_at"],
            }
            for row in rows
        ]
    finally:
        conn.close()


def clear_all_cache() -> int:
    """Remove the entire cache database, returning number of snapshots removed."""

    db_path = cache_db_path()
    if not db_path.exists():
        return 0

    conn = _connect(db_path)
    try:
        _ensure_schema(conn)
        count_row = conn.execute("SELECT COUNT(*) AS total FROM snapshot").fetchone()
        total = int(count_row["total"] if count_row is not None else 0)
    finally:
        conn.close()

    if db_path.exists():
        db_path.unlink()
    for suffix in ("-wal", "-shm"):
        sidecar = Path(f"{db_path}{suffix}")
        if sidecar.exists():
            sidecar.unlink()

    return total
