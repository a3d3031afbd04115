from __future__ import annotations

import pytest

from grepdex.config import EngineSettings
from grepdex.errors import EnumerationError
from grepdex.filesystem import LocalFileSystem
from grepdex.progress import ProgressReporter
from grepdex.services.discovery_service import FileEnumerator


@pytest.mark.asyncio
async def test_local_filesystem_reads_and_stats(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes("café\nbad ".encode("utf-8") + b"\xfe")
    fs = LocalFileSystem()

    stat = await fs.stat(path)
    text = await fs.read_text(path)

    assert stat.size == path.stat().st_size
    assert stat.mtime == path.stat().st_mtime
    assert text.startswith("café\n")
    assert "�" in text


@pytest.mark.asyncio
async def test_local_filesystem_rejects_binary_content(tmp_path):
    path = tmp_path / "blob.txt"
    path.write_bytes(b"abc\x00def")

    with pytest.raises(UnicodeDecodeError):
        await LocalFileSystem().read_text(path)


@pytest.mark.asyncio
async def test_local_filesystem_enumerates_with_globs(tmp_path):
    (tmp_path / "dist").mkdir()
    (tmp_path / "dist" / "bundle.js").write_text("x", encoding="utf-8")
    (tmp_path / "main.js").write_text("x", encoding="utf-8")

    files = await LocalFileSystem().enumerate(tmp_path, ("**/dist/**",), 100)

    assert files == [tmp_path / "main.js"]


@pytest.mark.asyncio
async def test_enumerator_filters_extensions_and_caps_results(fake_fs):
    for idx in range(4):
        fake_fs.write(f"doc{idx}.txt", "x")
    fake_fs.write("archive.ZIP", "x")
    settings = EngineSettings(max_files=10)

    files = await FileEnumerator(fake_fs.root, fake_fs, settings).enumerate()
    assert [path.name for path in files] == ["doc0.txt", "doc1.txt", "doc2.txt", "doc3.txt"]

    capped = await FileEnumerator(fake_fs.root, fake_fs, EngineSettings(max_files=2)).enumerate()
    assert len(capped) <= 2


@pytest.mark.asyncio
async def test_enumerator_wraps_failures(fake_fs):
    fake_fs.enumerate_error = PermissionError("denied")

    with pytest.raises(EnumerationError) as excinfo:
        await FileEnumerator(fake_fs.root, fake_fs, EngineSettings()).enumerate()

    assert "denied" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, PermissionError)


def test_progress_reporter_disables_failing_callback():
    calls = []

    def sink(message, percent):
        calls.append((message, percent))
        if len(calls) == 2:
            raise RuntimeError("closed")

    reporter = ProgressReporter(sink)
    reporter.report("one", 10.0)
    reporter.report("two")
    reporter.report("three")

    assert calls == [("one", 10.0), ("two", None)]
    assert reporter.enabled is False

    reporter.set_callback(sink)
    assert reporter.enabled is True
    assert ProgressReporter().enabled is False
