"""Persist and validate index snapshots for a workspace."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from ..cache import KeyValueStore
from ..config import EngineSettings
from ..filesystem import FileSystem
from ..store import CachedEntry, IndexEntry, to_cached

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheSnapshot:
    format_version: int
    workspace_fingerprint: str
    last_index_time: float
    entries: list[CachedEntry]
    stats: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": self.format_version,
            "workspace_fingerprint": self.workspace_fingerprint,
            "last_index_time": self.last_index_time,
            "entries": [entry.to_dict() for entry in self.entries],
            "stats": dict(self.stats),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheSnapshot":
        raw_entries = data.get("entries") or []
        if not isinstance(raw_entries, list):
            raise ValueError("snapshot entries must be a list")
        return cls(
            format_version=int(data["format_version"]),
            workspace_fingerprint=str(data["workspace_fingerprint"]),
            last_index_time=float(data["last_index_time"]),
            entries=[CachedEntry.from_dict(item) for item in raw_entries],
            stats=dict(data.get("stats") or {}),
        )


@dataclass(slots=True)
class CacheLoadResult:
    entries: list[CachedEntry]
    last_index_time: float
    total: int

    @property
    def valid(self) -> int:
        return len(self.entries)


class CachePersistence:
    """Save the entry store under one key and load it back only when trustworthy."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        fingerprint: str,
        fs: FileSystem,
        settings: EngineSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.fingerprint = fingerprint
        self.fs = fs
        self.settings = settings or EngineSettings()
        self.clock = clock

    def build_snapshot(
        self,
        entries: Sequence[IndexEntry],
        build_time: float,
        *,
        build_duration: float = 0.0,
    ) -> CacheSnapshot:
        cached = [to_cached(entry) for entry in entries]
        return CacheSnapshot(
            format_version=self.settings.format_version,
            workspace_fingerprint=self.fingerprint,
            last_index_time=build_time,
            entries=cached,
            stats={
                "file_count": len(cached),
                "line_count": sum(len(entry.lines) for entry in cached),
                "build_duration": round(build_duration, 3),
            },
        )

    async def save(
        self,
        entries: Sequence[IndexEntry],
        build_time: float,
        *,
        build_duration: float = 0.0,
    ) -> bool:
        """Write a snapshot; failures are logged and reported as ``False``."""

        try:
            snapshot = self.build_snapshot(entries, build_time, build_duration=build_duration)
            await asyncio.to_thread(self.store.set, self.settings.cache_key, snapshot.to_dict())
        except Exception as exc:
            logger.warning("Failed to persist index snapshot: %s", exc)
            return False
        logger.debug("Persisted index snapshot with %d entries", len(entries))
        return True

    async def load(self) -> CacheLoadResult | None:
        """Return the still-valid cached entries, or ``None`` when the cache is not usable."""

        try:
            raw = await asyncio.to_thread(self.store.get, self.settings.cache_key)
        except Exception as exc:
            logger.warning("Failed to read index snapshot: %s", exc)
            return None
        if raw is None:
            logger.debug("No index snapshot stored")
            return None
        try:
            snapshot = CacheSnapshot.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding corrupt index snapshot: %s", exc)
            return None

        reason = self.rejection_reason(snapshot)
        if reason is not None:
            logger.info("Discarding index snapshot: %s", reason)
            return None

        total = len(snapshot.entries)
        survivors = await self._validate_entries(snapshot.entries)
        ratio = len(survivors) / total
        if ratio < self.settings.min_cache_valid_ratio:
            logger.info(
                "Discarding index snapshot: only %d of %d entries still match disk",
                len(survivors),
                total,
            )
            return None
        logger.info("Loaded %d of %d cached entries", len(survivors), total)
        return CacheLoadResult(
            entries=survivors,
            last_index_time=snapshot.last_index_time,
            total=total,
        )

    def rejection_reason(self, snapshot: CacheSnapshot) -> str | None:
        if snapshot.format_version != self.settings.format_version:
            return (
                f"format version {snapshot.format_version} != "
                f"{self.settings.format_version}"
            )
        if snapshot.workspace_fingerprint != self.fingerprint:
            return "workspace fingerprint mismatch"
        age = self.clock() - snapshot.last_index_time
        if age > self.settings.max_cache_age:
            return f"snapshot is {age:.0f}s old"
        if not snapshot.entries:
            return "snapshot has no entries"
        return None

    async def clear(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.store.delete, self.settings.cache_key))
        except Exception as exc:
            logger.warning("Failed to clear index snapshot: %s", exc)
            return False

    async def _validate_entries(self, entries: Sequence[CachedEntry]) -> list[CachedEntry]:
        survivors: list[CachedEntry] = []
        batch_size = max(1, self.settings.index_batch_size)
        for start in range(0, len(entries), batch_size):
            batch = entries[start : start + batch_size]
            results = await asyncio.gather(
                *(self.fs.stat(entry.path) for entry in batch),
                return_exceptions=True,
            )
            for entry, result in zip(batch, results):
                if isinstance(result, BaseException):
                    continue
                if result.mtime == entry.last_modified:
                    survivors.append(entry)
        return survivors
