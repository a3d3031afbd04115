"""Progress sink wrapper shared by indexing and search."""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Optional[float]], None]


class ProgressReporter:
    """Forward progress to an optional callback, disabling it after a failure."""

    def __init__(self, callback: ProgressCallback | None = None) -> None:
        self._callback = callback
        self._disabled = False

    @property
    def enabled(self) -> bool:
        return self._callback is not None and not self._disabled

    def set_callback(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self._disabled = False

    def report(self, message: str, percent: float | None = None) -> None:
        if not self.enabled:
            return
        try:
            self._callback(message, percent)  # type: ignore[misc]
        except Exception as exc:
            logger.warning("Progress callback failed, disabling it: %s", exc)
            self._disabled = True
