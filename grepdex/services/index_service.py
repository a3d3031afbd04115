"""Build and refresh the in-memory content index."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable

from ..config import EngineSettings
from ..filesystem import FileSystem
from ..progress import ProgressReporter
from ..store import EntryStore, IndexEntry, LiveEntry
from ..utils import build_exclude_spec, has_excluded_extension, is_excluded_path, relative_posix
from .cache_service import CachePersistence
from .discovery_service import FileEnumerator

logger = logging.getLogger(__name__)

YieldControl = Callable[[], Awaitable[None]]


class IndexStatus(str, Enum):
    BUILT = "built"
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"
    LOADED = "loaded"
    SKIPPED = "skipped"


@dataclass(slots=True)
class IndexResult:
    status: IndexStatus
    files_indexed: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    reused: int = 0
    evicted: int = 0
    lines_indexed: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed or self.evicted)


@dataclass(slots=True)
class _FileOutcome:
    entry: IndexEntry | None
    reused: bool = False


async def cooperative_yield() -> None:
    """Hand control back to the event loop once."""
    await asyncio.sleep(0)


class IndexBuilder:
    """Sole writer of the entry store.

    A full build fills a fresh store and swaps it in only when complete; an
    incremental update edits the live store path by path. At most one of the
    two runs at a time and concurrent callers share the running task.
    """

    def __init__(
        self,
        root: Path,
        *,
        fs: FileSystem,
        settings: EngineSettings | None = None,
        persistence: CachePersistence | None = None,
        progress: ProgressReporter | None = None,
        clock: Callable[[], float] = time.time,
        yield_control: YieldControl = cooperative_yield,
    ) -> None:
        self.root = root
        self.fs = fs
        self.settings = settings or EngineSettings()
        self.persistence = persistence
        self.progress = progress or ProgressReporter()
        self.clock = clock
        self._yield_control = yield_control
        self._enumerator = FileEnumerator(root, fs, self.settings)
        self._store = EntryStore()
        self._last_index_time: float | None = None
        self._last_eviction: float | None = None
        self._inflight: asyncio.Future[IndexResult] | None = None
        self._background: set[asyncio.Future[bool]] = set()
        self._save_lock = asyncio.Lock()
        self._saved_build_time: float | None = None
        self._generation = 0
        self._disposed = False

    @property
    def store(self) -> EntryStore:
        return self._store

    @property
    def last_index_time(self) -> float | None:
        return self._last_index_time

    @property
    def is_building(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def index_age(self) -> float | None:
        if self._last_index_time is None:
            return None
        return self.clock() - self._last_index_time

    def update_settings(self, settings: EngineSettings) -> None:
        self.settings = settings
        self._enumerator.settings = settings
        if self.persistence is not None:
            self.persistence.settings = settings

    def mark_stale(self) -> None:
        """Force the next ``ensure_fresh`` to run a full build."""
        self._last_index_time = None

    async def full_build(self) -> IndexResult:
        return await self._single_flight(self._full_build)

    async def incremental_update(self) -> IndexResult:
        return await self._single_flight(self._incremental_update)

    async def ensure_fresh(self) -> IndexResult | None:
        if self._disposed:
            return None
        if self.is_building:
            return await asyncio.shield(self._inflight)  # type: ignore[arg-type]
        age = self.index_age()
        if not len(self._store) or age is None or age > self.settings.full_rebuild_after:
            return await self.full_build()
        if age > self.settings.incremental_after:
            return await self.incremental_update()
        return None

    async def load_from_cache(self) -> IndexResult | None:
        """Adopt a usable persisted snapshot as the live store."""

        if self.persistence is None or self._disposed:
            return None
        generation = self._generation
        loaded = await self.persistence.load()
        if loaded is None or generation != self._generation:
            return None
        self._store = EntryStore(loaded.entries)
        self._last_index_time = loaded.last_index_time
        return IndexResult(
            status=IndexStatus.LOADED,
            files_indexed=len(self._store),
            reused=loaded.valid,
            lines_indexed=self._store.line_count(),
        )

    async def index_file(self, path: Path | str) -> bool:
        """(Re)index a single file in the live store; return whether it is indexed afterwards."""

        if self._disposed:
            return False
        file_path = Path(path)
        if not file_path.is_absolute():
            file_path = self.root / file_path
        existing = self._store.get(file_path)
        if not self._passes_filters(file_path):
            if existing is not None:
                self._store.delete(file_path)
                self._schedule_save()
            return False
        generation = self._generation
        outcome = await self._load_file(file_path, existing)
        if generation != self._generation:
            return False
        if outcome.entry is None:
            if existing is not None:
                self._store.delete(file_path)
                self._schedule_save()
            return False
        if not outcome.reused:
            self._store.set(file_path, outcome.entry)
            self._schedule_save()
        return True

    async def drain(self) -> None:
        """Wait for pending snapshot writes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def dispose(self) -> None:
        self._disposed = True
        self._generation += 1
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        self._store.clear()
        self._store = EntryStore()
        self._last_index_time = None

    async def _single_flight(
        self,
        operation: Callable[[], Awaitable[IndexResult]],
    ) -> IndexResult:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(operation())
            self._inflight = task
            task.add_done_callback(self._release_inflight)
        return await asyncio.shield(task)

    def _release_inflight(self, task: asyncio.Future[IndexResult]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the exception retrieved; awaiting callers still receive it.
            task.exception()

    async def _full_build(self) -> IndexResult:
        if self._disposed:
            return IndexResult(status=IndexStatus.SKIPPED)
        generation = self._generation
        started = self.clock()
        files = await self._enumerator.enumerate()
        previous = self._store
        fresh = EntryStore()
        result = IndexResult(status=IndexStatus.BUILT)
        total = len(files)
        batch_size = max(1, self.settings.index_batch_size)

        for batch_number, start in enumerate(range(0, total, batch_size), 1):
            if generation != self._generation:
                return IndexResult(status=IndexStatus.SKIPPED)
            batch = files[start : start + batch_size]
            outcomes = await asyncio.gather(
                *(self._load_file(path, previous.get(path)) for path in batch)
            )
            for outcome in outcomes:
                if outcome.entry is None:
                    continue
                fresh.set(outcome.entry.key, outcome.entry)
                if outcome.reused:
                    result.reused += 1
            result.evicted += self._maybe_evict(fresh)
            self._report("Indexing files", start + len(batch), total)
            await self._yield_between_batches(batch_number)

        if generation != self._generation:
            return IndexResult(status=IndexStatus.SKIPPED)
        self._store = fresh
        self._last_index_time = self.clock()
        result.files_indexed = len(fresh)
        result.lines_indexed = fresh.line_count()
        logger.info(
            "Indexed %d files under %s (%d reused, %d evicted)",
            len(fresh),
            self.root,
            result.reused,
            result.evicted,
        )
        self._schedule_save(build_duration=self._last_index_time - started)
        return result

    async def _incremental_update(self) -> IndexResult:
        if self._disposed:
            return IndexResult(status=IndexStatus.SKIPPED)
        generation = self._generation
        files = await self._enumerator.enumerate()
        store = self._store
        result = IndexResult(status=IndexStatus.UPDATED)
        current = {str(path) for path in files}
        total = len(files)
        batch_size = max(1, self.settings.index_batch_size)

        for batch_number, start in enumerate(range(0, total, batch_size), 1):
            if generation != self._generation:
                return IndexResult(status=IndexStatus.SKIPPED)
            batch = files[start : start + batch_size]
            existing = [store.get(path) for path in batch]
            outcomes = await asyncio.gather(
                *(self._load_file(path, entry) for path, entry in zip(batch, existing))
            )
            if generation != self._generation:
                return IndexResult(status=IndexStatus.SKIPPED)
            for path, previous, outcome in zip(batch, existing, outcomes):
                if outcome.entry is None:
                    if previous is not None and store.delete(path):
                        result.removed += 1
                    continue
                if outcome.reused:
                    continue
                store.set(path, outcome.entry)
                if previous is None:
                    result.added += 1
                else:
                    result.updated += 1
            result.evicted += self._maybe_evict(store)
            self._report("Refreshing index", start + len(batch), total)
            await self._yield_between_batches(batch_number)

        if generation != self._generation:
            return IndexResult(status=IndexStatus.SKIPPED)
        for key in store.paths():
            if key not in current and store.delete(key):
                result.removed += 1

        self._last_index_time = self.clock()
        result.files_indexed = len(store)
        result.lines_indexed = store.line_count()
        if not result.changed:
            result.status = IndexStatus.UP_TO_DATE
            return result
        logger.info(
            "Index refreshed: %d added, %d updated, %d removed, %d evicted",
            result.added,
            result.updated,
            result.removed,
            result.evicted,
        )
        self._schedule_save()
        return result

    async def _load_file(self, path: Path, existing: IndexEntry | None) -> _FileOutcome:
        try:
            stat = await self.fs.stat(path)
            if existing is not None and existing.last_modified >= stat.mtime:
                return _FileOutcome(entry=existing, reused=True)
            if stat.size > self.settings.max_file_size:
                return _FileOutcome(entry=None)
            content = await self.fs.read_text(path)
        except Exception as exc:
            logger.debug("Skipping %s: %s", path, exc)
            return _FileOutcome(entry=None)
        return _FileOutcome(
            entry=LiveEntry(
                path=path,
                lines=content.split("\n"),
                last_modified=stat.mtime,
                file_name=path.name,
                relative_path=relative_posix(path, self.root),
            )
        )

    def _passes_filters(self, path: Path) -> bool:
        if has_excluded_extension(path, self.settings.excluded_extensions):
            return False
        spec = build_exclude_spec(self.settings.effective_exclude_globs())
        return not is_excluded_path(spec, relative_posix(path, self.root))

    def _maybe_evict(self, store: EntryStore) -> int:
        if len(store) <= self.settings.max_entries:
            return 0
        now = self.clock()
        if (
            self._last_eviction is not None
            and now - self._last_eviction < self.settings.eviction_cooldown
        ):
            return 0
        removed = store.evict_oldest(self.settings.eviction_fraction)
        self._last_eviction = now
        logger.info("Evicted %d oldest index entries", len(removed))
        return len(removed)

    def _report(self, label: str, done: int, total: int) -> None:
        percent = round(done / total * 100, 1) if total else 100.0
        self.progress.report(f"{label} ({done}/{total})", percent)

    async def _yield_between_batches(self, batch_number: int) -> None:
        every = max(1, self.settings.yield_every_batches)
        if batch_number % every == 0:
            await self._yield_control()

    def _schedule_save(self, *, build_duration: float = 0.0) -> None:
        if self.persistence is None or self._disposed:
            return
        build_time = self._last_index_time if self._last_index_time is not None else self.clock()
        task = asyncio.ensure_future(
            self._save_in_order(self._store.entries(), build_time, build_duration)
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _save_in_order(
        self, entries: list[IndexEntry], build_time: float, build_duration: float
    ) -> bool:
        # Writes run one at a time in scheduling order; an older snapshot never lands last.
        async with self._save_lock:
            if self._saved_build_time is not None and build_time < self._saved_build_time:
                logger.debug("Skipping stale index snapshot from %s", build_time)
                return False
            saved = await self.persistence.save(  # type: ignore[union-attr]
                entries, build_time, build_duration=build_duration
            )
            if saved:
                self._saved_build_time = build_time
            return saved
