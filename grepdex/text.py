"""Centralized user-facing text for the grepdex CLI."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"
    MATCH = "bold yellow"
    FILE = "bold"


class Messages:
    APP_HELP = "grepdex: indexed substring search over every text file in a tree."
    HELP_QUERY = "Text to find. Embedded newlines make it a multi-line query."
    HELP_SEARCH_PATH = "Workspace root to index and search."
    HELP_SEARCH_TOP = "Maximum number of matches to display (0 = all)."
    HELP_CASE_SENSITIVE = "Match letter case exactly (overrides the configured mode)."
    HELP_IGNORE_CASE = "Ignore letter case (overrides the configured mode)."
    HELP_SEARCH_FORMAT = "Output format: rich table or porcelain lines."
    HELP_NO_CACHE = "Ignore and do not write the persisted index snapshot."
    HELP_VERBOSE = "Log indexing and cache activity."
    HELP_INDEX_PATH = "Workspace root to index."
    HELP_INDEX_CLEAR = "Remove the cached snapshot for the workspace instead of indexing."
    HELP_CACHE_SHOW = "List cached workspace snapshots."
    HELP_CACHE_CLEAR = "Delete the whole snapshot cache database."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_SET_CASE_SENSITIVE = "Persist the default case mode (true/false)."
    HELP_SET_EXCLUDES = "Replace the user exclude patterns (repeatable, gitignore-style globs)."
    HELP_CLEAR_EXCLUDES = "Remove all user exclude patterns."
    HELP_EXCLUDES_ENABLED = "Enable or disable the user exclude patterns (true/false)."

    ERROR_QUERY_TOO_SHORT = "Query must contain at least {minimum} characters."
    ERROR_TOP_NEGATIVE = "--top must be >= 0"
    ERROR_BOOLEAN_INVALID = "Invalid boolean value '{value}'. Use true/false."
    ERROR_ENUMERATION = "Unable to list files under {path}: {reason}"
    ERROR_CACHE_SHOW_CLEAR_CONFLICT = "Use either --show or --clear, not both."
    ERROR_CASE_FLAGS_CONFLICT = "Use either --case-sensitive or --ignore-case, not both."

    INFO_SEARCH_RUNNING = "Searching indexed files under {path}..."
    INFO_NO_RESULTS = "No matches found."
    INFO_INDEX_RUNNING = "Indexing files under {path}..."
    INFO_INDEX_BUILT = "Indexed {count} file{plural} ({lines} lines)."
    INFO_INDEX_EMPTY = "No indexable files found under {path}."
    INFO_INDEX_CLEARED = "Removed cached snapshot for {path}."
    INFO_INDEX_CLEAR_NONE = "No cached snapshot found for {path}."
    INFO_CACHE_EMPTY = "Snapshot cache is empty."
    INFO_CACHE_CLEARED = "Removed {count} cached snapshot{plural}."
    INFO_CONFIG_SAVED = "Configuration saved."
    INFO_CONFIG_SUMMARY = (
        "Case sensitive: {case_sensitive}\n"
        "Exclude patterns: {patterns}\n"
        "Exclude patterns enabled: {enabled}\n"
        "Max file size: {max_file_size} bytes\n"
        "Max files: {max_files}"
    )
    INFO_SUMMARY = "{matches} match{plural} in {files} file{file_plural}."

    TABLE_TITLE = "grepdex results for {query!r}"
    TABLE_HEADER_LOCATION = "Location"
    TABLE_HEADER_SCORE = "Score"
    TABLE_HEADER_PREVIEW = "Preview"
    TABLE_CACHE_TITLE = "Cached workspace snapshots"
    TABLE_HEADER_WORKSPACE = "Workspace"
    TABLE_HEADER_FILES = "Files"
    TABLE_HEADER_UPDATED = "Updated"
    MULTILINE_TAG = "(multi-line)"
