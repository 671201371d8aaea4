"""Resolution of the walk root to a canonical directory."""

from __future__ import annotations

import stat
from pathlib import Path

from statwalk.errors import ResolutionError, RootNotDirectoryError
from statwalk.fs import OSFileSystem


def resolve_root(path: str | Path, fs: OSFileSystem | None = None) -> str:
    """
    Resolve every symlink in `path` and return the absolute directory it names.

    Raises `ResolutionError` for missing paths or broken links and
    `RootNotDirectoryError` if the target is not a directory.
    """
    fs = fs or OSFileSystem()
    try:
        root = fs.realpath(str(path))
    except OSError as e:
        raise ResolutionError(f"failed to resolve {path}: {e.strerror or e}") from e
    try:
        st = fs.stat(root)
    except OSError as e:
        raise ResolutionError(f"failed to stat {root}: {e.strerror or e}") from e
    if not stat.S_ISDIR(st.st_mode):
        raise RootNotDirectoryError(f"{root} is not a directory")
    return root
