"""Exception types raised by the grepdex engine."""

from __future__ import annotations


class GrepdexError(RuntimeError):
    """Base class for engine failures that reach the caller."""


class EnumerationError(GrepdexError):
    """Raised when the workspace file listing cannot be produced."""


class SearchCancelledError(GrepdexError):
    """Raised when a search is cancelled through its token before completion."""
