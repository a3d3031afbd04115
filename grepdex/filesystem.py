"""File-system collaborator used by the index builder and cache validation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from .utils import collect_files


@dataclass(frozen=True, slots=True)
class FileStat:
    size: int
    mtime: float


class FileSystem(Protocol):
    """Minimal async interface over enumeration, stat and text reads.

    Every call is fallible and may be slow; stat and read are not guaranteed
    to observe the same version of a file.
    """

    async def enumerate(
        self,
        root: Path,
        exclude_globs: Sequence[str],
        max_results: int,
    ) -> list[Path]:
        raise NotImplementedError  # pragma: no cover

    async def stat(self, path: Path) -> FileStat:
        raise NotImplementedError  # pragma: no cover

    async def read_text(self, path: Path) -> str:
        raise NotImplementedError  # pragma: no cover


class LocalFileSystem:
    """Local disk access; blocking calls run in the default thread pool."""

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    async def enumerate(
        self,
        root: Path,
        exclude_globs: Sequence[str],
        max_results: int,
    ) -> list[Path]:
        return await asyncio.to_thread(
            collect_files,
            root,
            exclude_patterns=tuple(exclude_globs),
            max_files=max_results,
        )

    async def stat(self, path: Path) -> FileStat:
        result = await asyncio.to_thread(path.stat)
        return FileStat(size=result.st_size, mtime=result.st_mtime)

    async def read_text(self, path: Path) -> str:
        data = await asyncio.to_thread(path.read_bytes)
        if b"\x00" in data:
            raise UnicodeDecodeError(self.encoding, data, 0, 1, "binary content")
        return data.decode(self.encoding, errors="replace")
