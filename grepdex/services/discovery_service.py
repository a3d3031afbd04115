"""Candidate file discovery for indexing."""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import EngineSettings
from ..errors import EnumerationError
from ..filesystem import FileSystem
from ..utils import has_excluded_extension

logger = logging.getLogger(__name__)


class FileEnumerator:
    """List indexable files under *root*: glob exclusions, extension denylist, bounded count."""

    def __init__(self, root: Path, fs: FileSystem, settings: EngineSettings) -> None:
        self.root = root
        self.fs = fs
        self.settings = settings

    async def enumerate(self) -> list[Path]:
        try:
            candidates = await self.fs.enumerate(
                self.root,
                self.settings.effective_exclude_globs(),
                self.settings.max_files,
            )
        except Exception as exc:
            raise EnumerationError(f"Unable to enumerate {self.root}: {exc}") from exc
        files = [
            path
            for path in candidates
            if not has_excluded_extension(path, self.settings.excluded_extensions)
        ]
        logger.debug(
            "Enumerated %d candidates under %s (%d after extension filter)",
            len(candidates),
            self.root,
            len(files),
        )
        return files
