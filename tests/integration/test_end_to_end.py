import pytest
from rich.console import Console
from typer.testing import CliRunner

from grepdex.cli import app


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr("grepdex.cli.console", Console(width=200))


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "loader.py").write_text(
        "def load_config(path):\n    # TODO: validate config\n    return read(path)\n",
        encoding="utf-8",
    )
    (root / "README.md").write_text("Call load_config to start.\n", encoding="utf-8")
    (root / "build").mkdir()
    (root / "build" / "generated.py").write_text("load_config = None\n", encoding="utf-8")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00")
    return root


def test_index_search_and_cache_round_trip(project):
    runner = CliRunner()

    indexed = runner.invoke(app, ["index", "--path", str(project)])
    assert indexed.exit_code == 0
    assert "Indexed 2 files (6 lines)." in indexed.stdout

    shown = runner.invoke(app, ["cache", "--show"])
    assert shown.exit_code == 0
    assert str(project.resolve()) in shown.stdout

    found = runner.invoke(
        app,
        ["search", "load_config", "--path", str(project), "--format", "porcelain"],
    )
    assert found.exit_code == 0
    rows = [line.split("\t") for line in found.stdout.splitlines()]
    assert [(row[0], row[1], row[2]) for row in rows] == [
        ("README.md", "1", "6"),
        ("src/loader.py", "1", "5"),
    ]

    cleared = runner.invoke(app, ["index", "--path", str(project), "--clear"])
    assert "Removed cached snapshot" in cleared.stdout
    again = runner.invoke(app, ["index", "--path", str(project), "--clear"])
    assert "No cached snapshot found" in again.stdout


def test_user_excludes_apply_to_search(project):
    runner = CliRunner()
    runner.invoke(app, ["config", "--exclude", ".md"])

    found = runner.invoke(
        app,
        ["search", "load_config", "--path", str(project), "--format", "porcelain", "--no-cache"],
    )

    assert found.exit_code == 0
    assert [line.split("\t")[0] for line in found.stdout.splitlines()] == ["src/loader.py"]


def test_multi_line_search(project):
    runner = CliRunner()

    found = runner.invoke(
        app,
        [
            "search",
            "(path):\n    # TODO",
            "--path",
            str(project),
            "--format",
            "porcelain",
            "--no-cache",
        ],
    )

    assert found.exit_code == 0
    fields = found.stdout.splitlines()[0].split("\t")
    assert fields[:3] == ["src/loader.py", "1", "16"]
    assert fields[4] == "multi"


def test_cache_clear_removes_everything(project):
    runner = CliRunner()
    runner.invoke(app, ["index", "--path", str(project)])

    cleared = runner.invoke(app, ["cache", "--clear"])

    assert cleared.exit_code == 0
    assert "Removed 1 cached snapshot." in cleared.stdout
    assert "Snapshot cache is empty." in runner.invoke(app, ["cache", "--show"]).stdout
