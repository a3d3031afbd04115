"""grepdex package initialization."""

from __future__ import annotations

from .api import EngineState, SearchEngine, in_memory_engine, index, search
from .cache import cache_dir_context, set_cache_dir
from .config import EngineSettings, config_dir_context, set_config_dir
from .errors import EnumerationError, GrepdexError, SearchCancelledError
from .search import Match, MatchGroup
from .services.search_service import CancellationToken

__all__ = [
    "__version__",
    "CancellationToken",
    "EngineSettings",
    "EngineState",
    "EnumerationError",
    "GrepdexError",
    "Match",
    "MatchGroup",
    "SearchCancelledError",
    "SearchEngine",
    "cache_dir_context",
    "config_dir_context",
    "get_version",
    "in_memory_engine",
    "index",
    "search",
    "set_cache_dir",
    "set_config_dir",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
