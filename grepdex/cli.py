"""Command line interface for grepdex."""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from . import __version__
from .api import index as index_workspace
from .api import search as search_workspace
from .cache import SqliteSnapshotStore, clear_all_cache, list_cache_entries, workspace_fingerprint
from .config import (
    EngineSettings,
    load_config,
    set_case_sensitive,
    set_exclude_enabled,
    set_exclude_patterns,
    settings_from_config,
)
from .errors import EnumerationError
from .search import Match, group_matches
from .services.index_service import IndexStatus
from .text import Messages, Styles
from .utils import normalize_exclude_patterns, resolve_directory

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


class SearchOutputFormat(str, Enum):
    rich = "rich"
    porcelain = "porcelain"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"grepdex v{__version__}")
        raise typer.Exit()


def _parse_boolean(value: str) -> bool:
    token = value.strip().lower()
    if token in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if token in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(Messages.ERROR_BOOLEAN_INVALID.format(value=value))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _plural(count: int, suffix: str = "s") -> str:
    return "" if count == 1 else suffix


def _escape_porcelain_field(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def _resolved_settings(case_sensitive: bool | None) -> EngineSettings:
    settings = settings_from_config(load_config())
    if case_sensitive is not None:
        settings = replace(settings, case_sensitive=case_sensitive)
    return settings


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    )
) -> None:
    """Global Typer callback for shared options."""
    return None


@app.command()
def search(
    query: str = typer.Argument(..., help=Messages.HELP_QUERY),
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help=Messages.HELP_SEARCH_PATH,
    ),
    top: int = typer.Option(20, "--top", "-k", help=Messages.HELP_SEARCH_TOP),
    case_sensitive: bool = typer.Option(
        False,
        "--case-sensitive",
        "-c",
        help=Messages.HELP_CASE_SENSITIVE,
    ),
    ignore_case: bool = typer.Option(
        False,
        "--ignore-case",
        "-i",
        help=Messages.HELP_IGNORE_CASE,
    ),
    output_format: SearchOutputFormat = typer.Option(
        SearchOutputFormat.rich,
        "--format",
        help=Messages.HELP_SEARCH_FORMAT,
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help=Messages.HELP_NO_CACHE),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Search every indexed text file for QUERY."""
    _configure_logging(verbose)
    if top < 0:
        raise typer.BadParameter(Messages.ERROR_TOP_NEGATIVE)
    if case_sensitive and ignore_case:
        raise typer.BadParameter(Messages.ERROR_CASE_FLAGS_CONFLICT)
    override = True if case_sensitive else (False if ignore_case else None)
    settings = _resolved_settings(override)
    if len(query) < settings.min_query_length:
        console.print(
            _styled(
                Messages.ERROR_QUERY_TOO_SHORT.format(minimum=settings.min_query_length),
                Styles.ERROR,
            )
        )
        raise typer.Exit(code=1)

    directory = resolve_directory(path)
    if output_format == SearchOutputFormat.rich:
        console.print(_styled(Messages.INFO_SEARCH_RUNNING.format(path=directory), Styles.INFO))
    try:
        matches = search_workspace(
            query,
            directory,
            settings=settings,
            use_cache=not no_cache,
            limit=top or None,
        )
    except EnumerationError as exc:
        message = Messages.ERROR_ENUMERATION.format(path=directory, reason=exc)
        if output_format == SearchOutputFormat.rich:
            console.print(_styled(message, Styles.ERROR))
        else:
            typer.echo(message, err=True)
        raise typer.Exit(code=1)

    if not matches:
        if output_format == SearchOutputFormat.rich:
            console.print(_styled(Messages.INFO_NO_RESULTS, Styles.WARNING))
        else:
            typer.echo(Messages.INFO_NO_RESULTS, err=True)
        raise typer.Exit(code=0)

    if output_format == SearchOutputFormat.porcelain:
        _render_matches_porcelain(matches)
        return
    _render_matches_table(query, matches, case_sensitive=settings.case_sensitive)


@app.command()
def index(
    path: Path = typer.Option(
        Path.cwd(),
        "--path",
        "-p",
        help=Messages.HELP_INDEX_PATH,
    ),
    clear: bool = typer.Option(False, "--clear", help=Messages.HELP_INDEX_CLEAR),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Build the index for a workspace and persist its snapshot."""
    _configure_logging(verbose)
    directory = resolve_directory(path)
    settings = settings_from_config(load_config())

    if clear:
        store = SqliteSnapshotStore(
            workspace_fingerprint(directory.name, directory),
            root_path=directory,
        )
        if store.delete(settings.cache_key):
            console.print(_styled(Messages.INFO_INDEX_CLEARED.format(path=directory), Styles.SUCCESS))
        else:
            console.print(_styled(Messages.INFO_INDEX_CLEAR_NONE.format(path=directory), Styles.INFO))
        return

    console.print(_styled(Messages.INFO_INDEX_RUNNING.format(path=directory), Styles.INFO))
    try:
        result = index_workspace(directory, settings=settings)
    except EnumerationError as exc:
        console.print(
            _styled(Messages.ERROR_ENUMERATION.format(path=directory, reason=exc), Styles.ERROR)
        )
        raise typer.Exit(code=1)
    if result.status == IndexStatus.SKIPPED or not result.files_indexed:
        console.print(_styled(Messages.INFO_INDEX_EMPTY.format(path=directory), Styles.WARNING))
        return
    console.print(
        _styled(
            Messages.INFO_INDEX_BUILT.format(
                count=result.files_indexed,
                plural=_plural(result.files_indexed),
                lines=result.lines_indexed,
            ),
            Styles.SUCCESS,
        )
    )


@app.command()
def cache(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_CACHE_SHOW),
    clear: bool = typer.Option(False, "--clear", help=Messages.HELP_CACHE_CLEAR),
) -> None:
    """Inspect or delete persisted index snapshots."""
    if show and clear:
        raise typer.BadParameter(Messages.ERROR_CACHE_SHOW_CLEAR_CONFLICT)
    if clear:
        removed = clear_all_cache()
        console.print(
            _styled(
                Messages.INFO_CACHE_CLEARED.format(count=removed, plural=_plural(removed)),
                Styles.SUCCESS,
            )
        )
        return

    entries = list_cache_entries()
    if not entries:
        console.print(_styled(Messages.INFO_CACHE_EMPTY, Styles.INFO))
        return
    table = Table(
        title=Messages.TABLE_CACHE_TITLE,
        title_style=Styles.TITLE,
        header_style=Styles.TABLE_HEADER,
    )
    table.add_column(Messages.TABLE_HEADER_WORKSPACE)
    table.add_column(Messages.TABLE_HEADER_FILES, justify="right")
    table.add_column(Messages.TABLE_HEADER_UPDATED)
    for entry in entries:
        table.add_row(
            str(entry["root_path"] or entry["scope"]),
            str(entry["file_count"]),
            str(entry["updated_at"]),
        )
    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
    case_sensitive: str | None = typer.Option(
        None,
        "--case-sensitive",
        help=Messages.HELP_SET_CASE_SENSITIVE,
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help=Messages.HELP_SET_EXCLUDES,
    ),
    clear_excludes: bool = typer.Option(
        False,
        "--clear-excludes",
        help=Messages.HELP_CLEAR_EXCLUDES,
    ),
    excludes_enabled: str | None = typer.Option(
        None,
        "--excludes-enabled",
        help=Messages.HELP_EXCLUDES_ENABLED,
    ),
) -> None:
    """Manage persisted search preferences."""
    changed = False
    try:
        if case_sensitive is not None:
            set_case_sensitive(_parse_boolean(case_sensitive))
            changed = True
        if excludes_enabled is not None:
            set_exclude_enabled(_parse_boolean(excludes_enabled))
            changed = True
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if clear_excludes:
        set_exclude_patterns([])
        changed = True
    elif exclude:
        set_exclude_patterns(normalize_exclude_patterns(exclude))
        changed = True

    if changed:
        console.print(_styled(Messages.INFO_CONFIG_SAVED, Styles.SUCCESS))
    if show or not changed:
        current = load_config()
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    case_sensitive="yes" if current.case_sensitive else "no",
                    patterns=", ".join(current.exclude_patterns) or "none",
                    enabled="yes" if current.exclude_enabled else "no",
                    max_file_size=current.max_file_size,
                    max_files=current.max_files,
                ),
                Styles.INFO,
            )
        )


def _preview_text(match: Match, query: str, *, case_sensitive: bool) -> Text:
    text = Text(match.preview)
    if not match.multiline:
        text.highlight_words([query], style=Styles.MATCH, case_sensitive=case_sensitive)
    else:
        text.append(f" {Messages.MULTILINE_TAG}", style=Styles.INFO)
    return text


def _render_matches_table(
    query: str,
    matches: Sequence[Match],
    *,
    case_sensitive: bool,
) -> None:
    groups = group_matches(matches)
    table = Table(
        title=Messages.TABLE_TITLE.format(query=query),
        title_style=Styles.TITLE,
        header_style=Styles.TABLE_HEADER,
    )
    table.add_column(Messages.TABLE_HEADER_LOCATION, no_wrap=True)
    table.add_column(Messages.TABLE_HEADER_SCORE, justify="right")
    table.add_column(Messages.TABLE_HEADER_PREVIEW, overflow="fold")
    for group in groups:
        count = len(group.matches)
        table.add_row(
            Text(group.relative_path, style=Styles.FILE),
            "",
            Text(f"{count} match{_plural(count, 'es')}", style=Styles.INFO),
        )
        for match in group.matches:
            table.add_row(
                f"  {match.line_number}:{match.start_column + 1}",
                str(match.score),
                _preview_text(match, query, case_sensitive=case_sensitive),
            )
    console.print(table)
    console.print(
        _styled(
            Messages.INFO_SUMMARY.format(
                matches=len(matches),
                plural=_plural(len(matches), "es"),
                files=len(groups),
                file_plural=_plural(len(groups)),
            ),
            Styles.INFO,
        )
    )


def _render_matches_porcelain(matches: Sequence[Match]) -> None:
    for match in matches:
        fields = (
            match.relative_path,
            str(match.line_number),
            str(match.start_column + 1),
            str(match.score),
            "multi" if match.multiline else "single",
            _escape_porcelain_field(match.preview),
        )
        typer.echo("\t".join(fields))


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app()
    else:
        app(args=list(argv))


if __name__ == "__main__":  # pragma: no cover
    run(sys.argv[1:])
