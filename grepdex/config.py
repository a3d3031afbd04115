"""Engine settings and persisted user preferences for grepdex."""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Sequence

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".grepdex"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "grepdex_config_dir_override",
    default=None,
)

FORMAT_VERSION = 1
DEFAULT_CACHE_KEY = "grepdex.index.snapshot"
DEFAULT_MIN_QUERY_LENGTH = 2
DEFAULT_MAX_FILE_SIZE = 512 * 1024
DEFAULT_MAX_FILES = 10_000
DEFAULT_MAX_ENTRIES = 5_000
DEFAULT_EVICTION_FRACTION = 0.2
DEFAULT_EVICTION_COOLDOWN = 300.0
DEFAULT_INDEX_BATCH_SIZE = 20
DEFAULT_SEARCH_BATCH_SIZE = 50
DEFAULT_YIELD_EVERY_BATCHES = 4
DEFAULT_FULL_REBUILD_AFTER = 10 * 60.0
DEFAULT_INCREMENTAL_AFTER = 60.0
DEFAULT_MAX_CACHE_AGE = 7 * 24 * 60 * 60.0
DEFAULT_MIN_CACHE_VALID_RATIO = 0.8
DEFAULT_REFRESH_DELAY = 5.0
DEFAULT_MULTILINE_BONUS = 10

DEFAULT_EXCLUDE_GLOBS: tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/out/**",
    "**/.git/**",
    "**/coverage/**",
    "**/.vscode/**",
    "**/target/**",
    "**/bin/**",
    "**/obj/**",
)

DEFAULT_EXCLUDED_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".zip", ".tar", ".gz", ".rar", ".7z",
        ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg", ".ico",
        ".mp3", ".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".exe", ".dll", ".so", ".dylib", ".bin", ".dat",
        ".db", ".sqlite", ".sqlite3",
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
    }
)


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Every tunable the engine reads; construct with overrides in tests."""

    format_version: int = FORMAT_VERSION
    cache_key: str = DEFAULT_CACHE_KEY
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_files: int = DEFAULT_MAX_FILES
    max_entries: int = DEFAULT_MAX_ENTRIES
    eviction_fraction: float = DEFAULT_EVICTION_FRACTION
    eviction_cooldown: float = DEFAULT_EVICTION_COOLDOWN
    index_batch_size: int = DEFAULT_INDEX_BATCH_SIZE
    search_batch_size: int = DEFAULT_SEARCH_BATCH_SIZE
    yield_every_batches: int = DEFAULT_YIELD_EVERY_BATCHES
    full_rebuild_after: float = DEFAULT_FULL_REBUILD_AFTER
    incremental_after: float = DEFAULT_INCREMENTAL_AFTER
    max_cache_age: float = DEFAULT_MAX_CACHE_AGE
    min_cache_valid_ratio: float = DEFAULT_MIN_CACHE_VALID_RATIO
    refresh_delay: float = DEFAULT_REFRESH_DELAY
    multiline_bonus: int = DEFAULT_MULTILINE_BONUS
    case_sensitive: bool = False
    exclude_globs: tuple[str, ...] = DEFAULT_EXCLUDE_GLOBS
    excluded_extensions: frozenset[str] = DEFAULT_EXCLUDED_EXTENSIONS
    user_exclude_patterns: tuple[str, ...] = ()
    user_excludes_enabled: bool = True

    def effective_exclude_globs(self) -> tuple[str, ...]:
        if self.user_excludes_enabled and self.user_exclude_patterns:
            return self.exclude_globs + self.user_exclude_patterns
        return self.exclude_globs


@dataclass
class Config:
    case_sensitive: bool = False
    exclude_patterns: list[str] = field(default_factory=list)
    exclude_enabled: bool = True
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    max_files: int = DEFAULT_MAX_FILES


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {dir_path}")
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def _coerce_positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _coerce_patterns(value: object) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    patterns: list[str] = []
    for item in value:
        if not isinstance(item, str):
            continue
        token = item.strip()
        if token and token not in patterns:
            patterns.append(token)
    return patterns


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    return Config(
        case_sensitive=bool(raw.get("case_sensitive", False)),
        exclude_patterns=_coerce_patterns(raw.get("exclude_patterns")),
        exclude_enabled=bool(raw.get("exclude_enabled", True)),
        max_file_size=_coerce_positive_int(raw.get("max_file_size"), DEFAULT_MAX_FILE_SIZE),
        max_files=_coerce_positive_int(raw.get("max_files"), DEFAULT_MAX_FILES),
    )


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "case_sensitive": bool(config.case_sensitive),
        "exclude_enabled": bool(config.exclude_enabled),
        "max_file_size": int(config.max_file_size),
        "max_files": int(config.max_files),
    }
    if config.exclude_patterns:
        data["exclude_patterns"] = list(config.exclude_patterns)
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_case_sensitive(value: bool) -> None:
    config = load_config()
    config.case_sensitive = bool(value)
    save_config(config)


def set_exclude_patterns(patterns: Sequence[str]) -> None:
    config = load_config()
    config.exclude_patterns = _coerce_patterns(list(patterns))
    save_config(config)


def set_exclude_enabled(value: bool) -> None:
    config = load_config()
    config.exclude_enabled = bool(value)
    save_config(config)


def settings_from_config(
    config: Config,
    *,
    base: EngineSettings | None = None,
) -> EngineSettings:
    """Overlay persisted user preferences onto *base* engine settings."""

    settings = base or EngineSettings()
    return replace(
        settings,
        case_sensitive=bool(config.case_sensitive),
        max_file_size=config.max_file_size,
        max_files=config.max_files,
        user_exclude_patterns=tuple(config.exclude_patterns),
        user_excludes_enabled=bool(config.exclude_enabled),
    )
