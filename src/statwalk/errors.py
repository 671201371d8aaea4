"""Exceptions raised by the tree walker."""

from __future__ import annotations


class WalkError(Exception):
    """Base class for all walk failures."""


class ResolutionError(WalkError):
    """The walk root could not be canonicalized (missing path, broken symlink)."""


class RootNotDirectoryError(WalkError, NotADirectoryError):
    """The resolved walk root exists but is not a directory."""


class PatternError(WalkError, ValueError):
    """An include or exclude pattern is syntactically invalid."""


class CancellationError(WalkError):
    """The walk was cancelled before it completed."""


class MetadataError(WalkError):
    """An enrichment hook failed for a specific entry."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path: str = path


class WalkIOError(WalkError):
    """Any other filesystem failure, tagged with the offending path."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path: str = path
