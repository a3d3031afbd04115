"""Utility helpers for filesystem access and path handling."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List, Sequence

from pathspec.gitignore import GitIgnoreSpec


def resolve_directory(path: Path | str) -> Path:
    """Resolve and validate a user supplied directory path."""
    dir_path = Path(path).expanduser().resolve()
    if not dir_path.exists():
        raise FileNotFoundError(f"Directory does not exist: {dir_path}")
    if not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    return dir_path


def _split_tokens(values: Iterable[str | None]) -> list[str]:
    tokens: list[str] = []
    for raw in values:
        if raw is None:
            continue
        for part in raw.replace(",", " ").split():
            if part:
                tokens.append(part)
    return tokens


def normalize_exclude_patterns(values: Iterable[str | None] | None) -> tuple[str, ...]:
    """Return deduplicated exclude globs; a bare extension such as ``.js`` means ``**/*.js``."""

    if not values:
        return ()
    patterns: list[str] = []
    for token in _split_tokens(values):
        if token.startswith(".") and "/" not in token and "*" not in token and len(token) > 1:
            token = f"**/*{token}"
        if token not in patterns:
            patterns.append(token)
    return tuple(patterns)


def build_exclude_spec(patterns: Sequence[str] | None) -> GitIgnoreSpec | None:
    if not patterns:
        return None
    return GitIgnoreSpec.from_lines(patterns)


def is_excluded_path(spec: GitIgnoreSpec | None, rel_path: str, *, is_dir: bool = False) -> bool:
    if spec is None or not rel_path:
        return False
    candidate = f"{rel_path}/" if is_dir and not rel_path.endswith("/") else rel_path
    return spec.match_file(candidate)


def relative_posix(path: Path, root: Path) -> str:
    try:
        rel = path.relative_to(root)
    except ValueError:
        return path.as_posix()
    if rel == Path("."):
        return ""
    return rel.as_posix()


def has_excluded_extension(path: Path, extensions: Iterable[str]) -> bool:
    """Return True if the final suffix of *path* is in *extensions* (case-insensitive)."""

    return path.suffix.lower() in extensions


def collect_files(
    root: Path | str,
    exclude_patterns: Sequence[str] | None = None,
    max_files: int | None = None,
) -> List[Path]:
    """Collect files under *root*, skipping excluded globs, stopping at *max_files*."""

    directory = resolve_directory(root)
    spec = build_exclude_spec(exclude_patterns)
    files: List[Path] = []
    limit = max_files if max_files and max_files > 0 else None

    for dirpath, dirnames, filenames in os.walk(directory, topdown=True):
        current_dir = Path(dirpath)
        kept: list[str] = []
        for dirname in sorted(dirnames):
            rel_child = relative_posix(current_dir / dirname, directory)
            if is_excluded_path(spec, rel_child, is_dir=True):
                continue
            kept.append(dirname)
        dirnames[:] = kept

        for filename in sorted(filenames):
            candidate = current_dir / filename
            if is_excluded_path(spec, relative_posix(candidate, directory)):
                continue
            files.append(candidate)
            if limit is not None and len(files) >= limit:
                files.sort()
                return files

    files.sort()
    return files

