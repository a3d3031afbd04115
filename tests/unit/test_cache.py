from __future__ import annotations

import sqlite3

import pytest

import grepdex.cache as cache


def _payload(count: int) -> dict:
    return {"format_version": 1, "entries": [{"uri_path": f"/ws/{idx}"} for idx in range(count)]}


def test_workspace_fingerprint_depends_on_name_and_root(tmp_path):
    first = cache.workspace_fingerprint("ws", tmp_path)
    assert first == cache.workspace_fingerprint("ws", tmp_path / ".")
    assert first != cache.workspace_fingerprint("other", tmp_path)
    assert first != cache.workspace_fingerprint("ws", tmp_path / "nested")
    assert len(first) == 40


def test_sqlite_store_round_trip(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_DIR", tmp_path)
    store = cache.SqliteSnapshotStore("scope-a", root_path="/ws")

    assert store.get("key") is None

    store.set("key", _payload(2))
    assert cache.cache_db_path() == tmp_path / cache.DB_FILENAME
    assert store.get("key") == _payload(2)

    store.set("key", _payload(3))
    assert len(store.get("key")["entries"]) == 3

    other_scope = cache.SqliteSnapshotStore("scope-b")
    assert other_scope.get("key") is None

    assert store.delete("key") is True
    assert store.delete("key") is False
    assert store.get("key") is None


def test_sqlite_store_records_metadata(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_DIR", tmp_path)
    cache.SqliteSnapshotStore("scope-a", root_path="/ws/a").set("key", _payload(4))
    cache.SqliteSnapshotStore("scope-b", root_path="/ws/b").set("key", _payload(1))

    entries = cache.list_cache_entries()

    assert {entry["root_path"]: entry["file_count"] for entry in entries} == {
        "/ws/a": 4,
        "/ws/b": 1,
    }
    assert all(entry["cache_key"] == "key" for entry in entries)


def test_clear_all_cache_removes_database(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_DIR", tmp_path)
    assert cache.clear_all_cache() == 0
    assert cache.list_cache_entries() == []

    cache.SqliteSnapshotStore("a").set("key", _payload(1))
    cache.SqliteSnapshotStore("b").set("key", _payload(1))

    assert cache.clear_all_cache() == 2
    assert not cache.cache_db_path().exists()
    assert cache.list_cache_entries() == []


def test_explicit_db_path_ignores_cache_dir(tmp_path):
    db_path = tmp_path / "custom" / "snapshots.db"
    store = cache.SqliteSnapshotStore("scope", db_path=db_path)

    store.set("key", _payload(1))

    assert db_path.exists()
    conn = sqlite3.connect(db_path)
    try:
        count = conn.execute("SELECT COUNT(*) FROM snapshot").fetchone()[0]
    finally:
        conn.close()
    assert count == 1


def test_cache_dir_context_overrides_temporarily(tmp_path, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_DIR", tmp_path / "default")
    override = tmp_path / "override"

    with cache.cache_dir_context(override):
        assert cache.cache_db_path() == override.resolve() / cache.DB_FILENAME
    assert cache.cache_db_path() == tmp_path / "default" / cache.DB_FILENAME

    marker = tmp_path / "file"
    marker.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        with cache.cache_dir_context(marker):
            pass


def test_memory_store_serializes_values():
    store = cache.MemorySnapshotStore()
    value = _payload(1)

    store.set("key", value)
    value["entries"].append({"uri_path": "/ws/late"})

    assert store.get("key") == _payload(1)
    assert store.delete("key") is True
    assert store.get("key") is None
