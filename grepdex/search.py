"""Match model, relevance scoring and result ranking."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

BASE_SCORE = 50
LINE_START_BONUS = 30
WORD_BOUNDARY_BONUS = 20
SHORT_LINE_BONUS = 10
SHORT_LINE_TOKENS = 10
NON_COMMENT_BONUS = 15
COMMENT_PREFIXES: tuple[str, ...] = ("//", "/*")
PREVIEW_MAX_LENGTH = 80


@dataclass(slots=True)
class Match:
    """A single query hit; lines and columns are 0-based, end column exclusive."""

    path: Path
    file_name: str
    relative_path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int
    score: int
    line_text: str
    preview: str
    multiline: bool = False

    @property
    def line_number(self) -> int:
        return self.start_line + 1

    @property
    def label(self) -> str:
        return f"{self.file_name}:{self.line_number}"


@dataclass(slots=True)
class MatchGroup:
    path: Path
    relative_path: str
    matches: List[Match] = field(default_factory=list)


def score_line(
    query: str,
    line_text: str,
    column: int | None = None,
    *,
    case_sensitive: bool = False,
) -> int:
    """Heuristic relevance of a hit of *query* in *line_text* starting at *column*.

    When *column* is omitted the first occurrence in the line is scored.
    """

    if column is None:
        haystack = line_text if case_sensitive else line_text.lower()
        needle = query if case_sensitive else query.lower()
        column = haystack.find(needle)

    score = BASE_SCORE
    if column == 0:
        score += LINE_START_BONUS
    elif column > 0 and line_text[column - 1 : column].isspace():
        score += WORD_BOUNDARY_BONUS

    if len(line_text.split()) < SHORT_LINE_TOKENS:
        score += SHORT_LINE_BONUS

    if not line_text.strip().startswith(COMMENT_PREFIXES):
        score += NON_COMMENT_BONUS
    return score


def format_preview(
    line: str,
    column: int,
    length: int,
    *,
    max_length: int = PREVIEW_MAX_LENGTH,
) -> str:
    """Return the trimmed *line*, windowed around the match when it is too long."""

    trimmed = line.strip()
    if not trimmed:
        return line
    leading = len(line) - len(line.lstrip())
    offset = column - leading
    if offset < 0:
        return trimmed
    if len(trimmed) <= max_length:
        return trimmed

    half = max_length // 2
    match_end = min(len(trimmed), offset + max(length, 0))
    start = max(0, offset - half)
    end = min(len(trimmed), match_end + half)
    window = trimmed[start:end]
    if start > 0:
        window = "..." + window
    if end < len(trimmed):
        window = window + "..."
    return window


def _sort_key(match: Match) -> tuple[int, str]:
    return (-match.score, match.label)


def group_matches(matches: Iterable[Match]) -> list[MatchGroup]:
    """Group *matches* by file, in order of each file's first appearance."""

    groups: dict[str, MatchGroup] = {}
    for match in matches:
        key = str(match.path)
        group = groups.get(key)
        if group is None:
            group = MatchGroup(path=match.path, relative_path=match.relative_path)
            groups[key] = group
        group.matches.append(match)
    return list(groups.values())


def rank_matches(matches: Sequence[Match], limit: int | None = None) -> list[Match]:
    """Sort by score (ties by label), then cluster per file keeping that order."""

    ordered = sorted(matches, key=_sort_key)
    ranked = [match for group in group_matches(ordered) for match in group.matches]
    if limit is not None and limit >= 0:
        return ranked[:limit]
    return ranked
