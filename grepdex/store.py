"""In-memory entry store: one flat content entry per indexed file."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Iterator, Mapping, Sequence, Union


@dataclass(slots=True)
class LiveEntry:
    """Entry built from a fresh read of the file."""

    source: ClassVar[str] = "live"

    path: Path
    lines: Sequence[str]
    last_modified: float
    file_name: str
    relative_path: str

    @property
    def key(self) -> str:
        return str(self.path)

    @property
    def display_name(self) -> str:
        return f"{self.file_name} ({self.relative_path})"


@dataclass(slots=True)
class CachedEntry:
    """Entry restored from a persisted snapshot; ``uri_path`` replaces the Path handle."""

    source: ClassVar[str] = "cache"

    uri_path: str
    lines: Sequence[str]
    last_modified: float
    file_name: str
    relative_path: str

    @property
    def key(self) -> str:
        return self.uri_path

    @property
    def path(self) -> Path:
        return Path(self.uri_path)

    @property
    def display_name(self) -> str:
        return f"{self.file_name} ({self.relative_path})"

    def to_dict(self) -> dict[str, object]:
        return {
            "uri_path": self.uri_path,
            "lines": list(self.lines),
            "last_modified": self.last_modified,
            "file_name": self.file_name,
            "relative_path": self.relative_path,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CachedEntry":
        lines = data["lines"]
        if not isinstance(lines, list):
            raise ValueError("cached entry lines must be a list")
        return cls(
            uri_path=str(data["uri_path"]),
            lines=[str(line) for line in lines],
            last_modified=float(data["last_modified"]),  # type: ignore[arg-type]
            file_name=str(data["file_name"]),
            relative_path=str(data["relative_path"]),
        )


IndexEntry = Union[LiveEntry, CachedEntry]


def to_cached(entry: IndexEntry) -> CachedEntry:
    if isinstance(entry, CachedEntry):
        return entry
    return CachedEntry(
        uri_path=str(entry.path),
        lines=entry.lines,
        last_modified=entry.last_modified,
        file_name=entry.file_name,
        relative_path=entry.relative_path,
    )


def to_live(entry: IndexEntry) -> LiveEntry:
    if isinstance(entry, LiveEntry):
        return entry
    return LiveEntry(
        path=Path(entry.uri_path),
        lines=entry.lines,
        last_modified=entry.last_modified,
        file_name=entry.file_name,
        relative_path=entry.relative_path,
    )


class EntryStore:
    """Path-keyed mapping of index entries.

    Single writer (the index builder), any number of readers on the same
    event loop. Readers take ``entries()`` snapshots instead of iterating the
    live mapping, so a mutation between two awaits never breaks a scan.
    """

    def __init__(self, entries: Sequence[IndexEntry] = ()) -> None:
        self._entries: dict[str, IndexEntry] = {}
        for entry in entries:
            self.set(entry.key, entry)

    def get(self, path: Path | str) -> IndexEntry | None:
        return self._entries.get(str(path))

    def set(self, path: Path | str, entry: IndexEntry) -> None:
        key = str(path)
        if key != entry.key:
            raise ValueError(f"Entry key {entry.key!r} does not match {key!r}")
        self._entries[key] = entry

    def delete(self, path: Path | str) -> bool:
        return self._entries.pop(str(path), None) is not None

    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._entries

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.entries())

    def paths(self) -> list[str]:
        return list(self._entries)

    def entries(self) -> list[IndexEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()

    def line_count(self) -> int:
        return sum(len(entry.lines) for entry in self._entries.values())

    def evict_oldest(self, fraction: float) -> list[str]:
        """Drop the oldest ``fraction`` of entries by ``last_modified``; return removed keys."""

        remove_count = math.floor(len(self._entries) * fraction)
        if remove_count <= 0:
            return []
        ordered = sorted(self._entries.values(), key=lambda entry: entry.last_modified)
        removed = [entry.key for entry in ordered[:remove_count]]
        for key in removed:
            del self._entries[key]
        return removed
