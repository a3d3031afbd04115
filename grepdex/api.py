"""Public Python API for grepdex."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Sequence

from .cache import KeyValueStore, MemorySnapshotStore, SqliteSnapshotStore, workspace_fingerprint
from .config import EngineSettings
from .filesystem import FileSystem, LocalFileSystem
from .progress import ProgressCallback, ProgressReporter
from .search import Match, rank_matches
from .services.cache_service import CachePersistence
from .services.index_service import (
    IndexBuilder,
    IndexResult,
    YieldControl,
    cooperative_yield,
)
from .services.search_service import CancellationToken, scan_entries
from .utils import normalize_exclude_patterns, resolve_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineState:
    ready: bool
    searching: bool
    pending_count: int


class SearchEngine:
    """Indexed substring search over one workspace.

    Call ``wait_until_ready`` (or just ``search``) from a running event loop.
    The engine restores a persisted snapshot when it is still valid, builds
    the index from disk otherwise, and refreshes it lazily before searches.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        workspace_name: str | None = None,
        settings: EngineSettings | None = None,
        fs: FileSystem | None = None,
        cache_store: KeyValueStore | None = None,
        use_cache: bool = True,
        progress: ProgressCallback | None = None,
        clock: Callable[[], float] = time.time,
        yield_control: YieldControl = cooperative_yield,
    ) -> None:
        self.root = resolve_directory(root)
        self.workspace_name = workspace_name or self.root.name
        self.settings = settings or EngineSettings()
        self.fingerprint = workspace_fingerprint(self.workspace_name, self.root)
        self._progress = ProgressReporter(progress)
        self._yield_control = yield_control
        self._fs = fs or LocalFileSystem()
        persistence = None
        if use_cache:
            store = cache_store or SqliteSnapshotStore(self.fingerprint, root_path=self.root)
            persistence = CachePersistence(
                store,
                fingerprint=self.fingerprint,
                fs=self._fs,
                settings=self.settings,
                clock=clock,
            )
        self._builder = IndexBuilder(
            self.root,
            fs=self._fs,
            settings=self.settings,
            persistence=persistence,
            progress=self._progress,
            clock=clock,
            yield_control=yield_control,
        )
        self._ready_task: asyncio.Future[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._ready = False
        self._searching = 0
        self._disposed = False

    @property
    def builder(self) -> IndexBuilder:
        return self._builder

    @property
    def disposed(self) -> bool:
        return self._disposed

    def set_progress_callback(self, callback: ProgressCallback | None) -> None:
        self._progress.set_callback(callback)

    def start(self) -> None:
        """Begin initialization in the background on the running loop."""
        if self._ready_task is None and not self._disposed:
            self._ready_task = asyncio.ensure_future(self._initialize())

    async def wait_until_ready(self) -> None:
        if self._disposed:
            return
        self.start()
        task = self._ready_task
        try:
            await asyncio.shield(task)  # type: ignore[arg-type]
        except Exception:
            # A failed start is retried by the next caller.
            if self._ready_task is task:
                self._ready_task = None
            raise

    async def search(
        self,
        query: str,
        token: CancellationToken | None = None,
        *,
        limit: int | None = None,
    ) -> list[Match]:
        """Return ranked matches for *query*; short queries return ``[]`` untouched."""

        if self._disposed or len(query) < self.settings.min_query_length:
            return []
        if token is not None:
            token.raise_if_cancelled()
        self._searching += 1
        try:
            await self.wait_until_ready()
            await self._builder.ensure_fresh()
            if self._disposed:
                return []
            matches = await scan_entries(
                self._builder.store.entries(),
                query,
                settings=self.settings,
                token=token,
                progress=self._progress,
                yield_control=self._yield_control,
            )
        finally:
            self._searching -= 1
        if self._disposed:
            return []
        return rank_matches(matches, limit=limit)

    async def refresh(self, *, full: bool = False) -> IndexResult:
        await self.wait_until_ready()
        if full:
            return await self._builder.full_build()
        return await self._builder.incremental_update()

    def get_state(self) -> EngineState:
        return EngineState(
            ready=self._ready,
            searching=self._searching > 0,
            pending_count=self._searching,
        )

    def set_case_sensitive(self, value: bool) -> None:
        self._apply_settings(replace(self.settings, case_sensitive=bool(value)))

    def get_case_sensitive(self) -> bool:
        return self.settings.case_sensitive

    def set_exclude_patterns(self, patterns: Sequence[str], enabled: bool = True) -> None:
        """Replace the user exclude globs; the next search rebuilds the index."""

        updated = replace(
            self.settings,
            user_exclude_patterns=normalize_exclude_patterns(patterns),
            user_excludes_enabled=bool(enabled),
        )
        changed = (
            updated.effective_exclude_globs() != self.settings.effective_exclude_globs()
        )
        self._apply_settings(updated)
        if changed:
            self._builder.mark_stale()

    def get_exclude_patterns(self) -> tuple[tuple[str, ...], bool]:
        return self.settings.user_exclude_patterns, self.settings.user_excludes_enabled

    def dispose(self) -> None:
        """Drop the index and pending work; safe while a build or search is running."""

        if self._disposed:
            return
        self._disposed = True
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        self._builder.dispose()
        self._ready = False
        logger.debug("Engine for %s disposed", self.root)

    async def aclose(self) -> None:
        await self._builder.drain()
        self.dispose()

    async def __aenter__(self) -> "SearchEngine":
        await self.wait_until_ready()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _apply_settings(self, settings: EngineSettings) -> None:
        self.settings = settings
        self._builder.update_settings(settings)

    async def _initialize(self) -> None:
        loaded = await self._builder.load_from_cache()
        if self._disposed:
            return
        if loaded is not None:
            logger.info("Restored %d indexed files from cache", loaded.files_indexed)
            self._refresh_task = asyncio.ensure_future(self._delayed_refresh())
        else:
            await self._builder.full_build()
        if not self._disposed:
            self._ready = True

    async def _delayed_refresh(self) -> None:
        await asyncio.sleep(self.settings.refresh_delay)
        if self._disposed:
            return
        try:
            await self._builder.incremental_update()
        except Exception as exc:
            logger.warning("Background index refresh failed: %s", exc)


async def _search_once(
    query: str,
    path: Path | str,
    *,
    settings: EngineSettings,
    use_cache: bool,
    limit: int | None,
) -> list[Match]:
    engine = SearchEngine(path, settings=settings, use_cache=use_cache)
    try:
        await engine.wait_until_ready()
        return await engine.search(query, limit=limit)
    finally:
        await engine.aclose()


async def _index_once(
    path: Path | str,
    *,
    settings: EngineSettings,
    use_cache: bool,
) -> IndexResult:
    engine = SearchEngine(path, settings=settings, use_cache=use_cache)
    try:
        await engine.wait_until_ready()
        return await engine.refresh(full=True)
    finally:
        await engine.aclose()


def search(
    query: str,
    path: Path | str = ".",
    *,
    settings: EngineSettings | None = None,
    use_cache: bool = True,
    limit: int | None = None,
) -> list[Match]:
    """Index *path* (reusing the persisted snapshot) and return ranked matches."""

    return asyncio.run(
        _search_once(
            query,
            path,
            settings=settings or EngineSettings(),
            use_cache=use_cache,
            limit=limit,
        )
    )


def index(
    path: Path | str = ".",
    *,
    settings: EngineSettings | None = None,
    use_cache: bool = True,
) -> IndexResult:
    """Build the index for *path* and persist it."""

    return asyncio.run(
        _index_once(path, settings=settings or EngineSettings(), use_cache=use_cache)
    )


def in_memory_engine(
    path: Path | str,
    *,
    settings: EngineSettings | None = None,
    **kwargs,
) -> SearchEngine:
    """Return an engine whose snapshots live only in this process."""

    return SearchEngine(
        path,
        settings=settings,
        cache_store=MemorySnapshotStore(),
        **kwargs,
    )
