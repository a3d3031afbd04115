"""Scan indexed entries for a query."""

from __future__ import annotations

import logging
import re
from typing import Sequence

from ..config import EngineSettings
from ..errors import SearchCancelledError
from ..progress import ProgressReporter
from ..search import Match, format_preview, score_line
from ..store import IndexEntry
from .index_service import YieldControl, cooperative_yield

logger = logging.getLogger(__name__)

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


class CancellationToken:
    """Caller-owned flag checked by the scanner at every batch boundary."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SearchCancelledError("Search cancelled")


def normalize_line_breaks(text: str) -> str:
    return _LINE_BREAK_RE.sub("\n", text)


def is_multiline_query(query: str) -> bool:
    return "\n" in query or "\r" in query


def _find_all(haystack: str, needle: str):
    """Yield every start offset of *needle*, overlapping ones included."""
    index = haystack.find(needle)
    while index != -1:
        yield index
        index = haystack.find(needle, index + 1)


def find_single_line_matches(
    entry: IndexEntry,
    query: str,
    *,
    case_sensitive: bool = False,
) -> list[Match]:
    needle = query if case_sensitive else query.lower()
    matches: list[Match] = []
    for line_index, line in enumerate(entry.lines):
        haystack = line if case_sensitive else line.lower()
        for column in _find_all(haystack, needle):
            matches.append(
                Match(
                    path=entry.path,
                    file_name=entry.file_name,
                    relative_path=entry.relative_path,
                    start_line=line_index,
                    start_column=column,
                    end_line=line_index,
                    end_column=column + len(query),
                    score=score_line(query, line, column, case_sensitive=case_sensitive),
                    line_text=line,
                    preview=format_preview(line, column, len(query)),
                )
            )
    return matches


def find_multi_line_matches(
    entry: IndexEntry,
    query: str,
    *,
    case_sensitive: bool = False,
    bonus: int = 10,
) -> list[Match]:
    normalized_query = normalize_line_breaks(query)
    # Line numbers must follow entry.lines, so a lone CR inside a line stays put.
    text = "\n".join(entry.lines).replace("\r\n", "\n")
    haystack = text if case_sensitive else text.lower()
    needle = normalized_query if case_sensitive else normalized_query.lower()
    matches: list[Match] = []

    for start in _find_all(haystack, needle):
        end = start + len(needle)
        start_line = text.count("\n", 0, start)
        start_column = start - (text.rfind("\n", 0, start) + 1)
        end_line = text.count("\n", 0, end)
        end_column = end - (text.rfind("\n", 0, end) + 1)
        context = entry.lines[start_line] if start_line < len(entry.lines) else ""
        highlight = min(len(needle), len(context) - start_column)
        matches.append(
            Match(
                path=entry.path,
                file_name=entry.file_name,
                relative_path=entry.relative_path,
                start_line=start_line,
                start_column=start_column,
                end_line=end_line,
                end_column=end_column,
                score=score_line(query, context, start_column, case_sensitive=case_sensitive)
                + bonus,
                line_text=context,
                preview=format_preview(context, start_column, highlight),
                multiline=True,
            )
        )
    return matches


async def scan_entries(
    entries: Sequence[IndexEntry],
    query: str,
    *,
    settings: EngineSettings | None = None,
    case_sensitive: bool | None = None,
    token: CancellationToken | None = None,
    progress: ProgressReporter | None = None,
    yield_control: YieldControl = cooperative_yield,
) -> list[Match]:
    """Return unranked matches of *query* across *entries*.

    Raises ``SearchCancelledError`` when *token* is cancelled before a batch
    starts; matches gathered so far are dropped.
    """

    settings = settings or EngineSettings()
    sensitive = settings.case_sensitive if case_sensitive is None else case_sensitive
    multiline = is_multiline_query(query)
    batch_size = max(1, settings.search_batch_size)
    every = max(1, settings.yield_every_batches)
    total = len(entries)
    results: list[Match] = []

    for batch_number, start in enumerate(range(0, total, batch_size), 1):
        if token is not None:
            token.raise_if_cancelled()
        for entry in entries[start : start + batch_size]:
            try:
                if multiline:
                    found = find_multi_line_matches(
                        entry,
                        query,
                        case_sensitive=sensitive,
                        bonus=settings.multiline_bonus,
                    )
                else:
                    found = find_single_line_matches(entry, query, case_sensitive=sensitive)
            except Exception as exc:
                logger.debug("Skipping %s during search: %s", getattr(entry, "key", entry), exc)
                continue
            results.extend(found)
        if progress is not None:
            done = min(start + batch_size, total)
            progress.report(f"Searching files ({done}/{total})", round(done / total * 100, 1))
        if batch_number % every == 0:
            await yield_control()

    if token is not None:
        token.raise_if_cancelled()
    return results
