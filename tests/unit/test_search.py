from __future__ import annotations

from pathlib import Path

from grepdex.search import (
    PREVIEW_MAX_LENGTH,
    Match,
    format_preview,
    group_matches,
    rank_matches,
    score_line,
)


def _match(name: str, line: int, score: int) -> Match:
    return Match(
        path=Path(f"/ws/{name}"),
        file_name=name,
        relative_path=name,
        start_line=line,
        start_column=0,
        end_line=line,
        end_column=3,
        score=score,
        line_text="foo",
        preview="foo",
    )


def test_score_line_start_of_line():
    assert score_line("foo", "foo bar", 0) == 105


def test_score_line_after_whitespace():
    assert score_line("foo", "bar foo", 4) == 95


def test_score_line_mid_word_scores_lower():
    mid_word = score_line("foo", "barfoo", 3)
    assert mid_word == 75
    assert mid_word < score_line("foo", "bar foo", 4)


def test_score_line_defaults_to_first_occurrence():
    assert score_line("FOO", "x foo foo") == score_line("foo", "x foo foo", 2)
    assert score_line("FOO", "x foo", case_sensitive=True) == 75


def test_score_line_comment_and_long_line_penalties():
    assert score_line("foo", "// foo", 3) == 80
    assert score_line("foo", "  /* foo */", 5) == 80
    assert score_line("foo", "# foo", 2) == 95
    long_line = "foo " + " ".join(["word"] * 12)
    assert score_line("foo", long_line, 0) == 95


def test_format_preview_short_line_is_trimmed():
    assert format_preview("    return foo()  ", 11, 3) == "return foo()"
    assert format_preview("   ", 0, 3) == "   "


def test_format_preview_long_line_gets_window():
    line = "a" * 100 + "needle" + "b" * 100
    preview = format_preview(line, 100, len("needle"))

    assert preview.startswith("...")
    assert preview.endswith("...")
    assert "needle" in preview
    assert len(preview) <= PREVIEW_MAX_LENGTH + len("needle") + 6


def test_format_preview_window_at_line_start_has_no_leading_ellipsis():
    line = "needle " + "x" * 120
    preview = format_preview(line, 0, 6)

    assert preview.startswith("needle")
    assert preview.endswith("...")


def test_rank_matches_orders_by_score_then_label_and_groups_files():
    matches = [
        _match("b.txt", 0, 80),
        _match("a.txt", 4, 95),
        _match("b.txt", 2, 105),
        _match("a.txt", 1, 95),
    ]

    ranked = rank_matches(matches)

    assert [(m.file_name, m.line_number) for m in ranked] == [
        ("b.txt", 3),
        ("b.txt", 1),
        ("a.txt", 2),
        ("a.txt", 5),
    ]
    assert rank_matches(matches, limit=2) == ranked[:2]


def test_group_matches_preserves_first_appearance():
    groups = group_matches([_match("b.txt", 0, 1), _match("a.txt", 0, 1), _match("b.txt", 1, 1)])

    assert [group.relative_path for group in groups] == ["b.txt", "a.txt"]
    assert [len(group.matches) for group in groups] == [2, 1]
