from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from grepdex.filesystem import FileStat
from grepdex.utils import build_exclude_spec, is_excluded_path, relative_posix


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFileSystem:
    """In-memory file tree keyed by absolute path; records call counts."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.files: dict[Path, tuple[str, float]] = {}
        self.unreadable: set[Path] = set()
        self.enumerate_error: Exception | None = None
        self.read_gate: asyncio.Event | None = None
        self.enumerate_calls = 0
        self.stat_calls = 0
        self.read_calls = 0

    def write(self, rel_path: str, content: str, mtime: float = 1.0) -> Path:
        path = self.root / rel_path
        self.files[path] = (content, mtime)
        return path

    def remove(self, rel_path: str) -> None:
        self.files.pop(self.root / rel_path, None)

    async def enumerate(self, root, exclude_globs, max_results):
        self.enumerate_calls += 1
        if self.enumerate_error is not None:
            raise self.enumerate_error
        spec = build_exclude_spec(exclude_globs)
        paths = sorted(
            path
            for path in self.files
            if not is_excluded_path(spec, relative_posix(path, root))
        )
        return paths[:max_results] if max_results else paths

    async def stat(self, path):
        self.stat_calls += 1
        if path not in self.files:
            raise FileNotFoundError(str(path))
        content, mtime = self.files[path]
        return FileStat(size=len(content.encode("utf-8")), mtime=mtime)

    async def read_text(self, path):
        self.read_calls += 1
        if self.read_gate is not None:
            await self.read_gate.wait()
        if path in self.unreadable:
            raise PermissionError(str(path))
        if path not in self.files:
            raise FileNotFoundError(str(path))
        return self.files[path][0]


@pytest.fixture
def workspace(tmp_path) -> Path:
    root = (tmp_path / "workspace").resolve()
    root.mkdir()
    return root


@pytest.fixture
def fake_fs(workspace) -> FakeFileSystem:
    return FakeFileSystem(workspace)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    monkeypatch.setattr("grepdex.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("grepdex.config.CONFIG_FILE", config_dir / "config.json")
    monkeypatch.setattr("grepdex.cache.CACHE_DIR", tmp_path / "cache")
    return tmp_path
