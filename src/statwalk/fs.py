"""Filesystem primitives used by the walker, gathered in one replaceable object."""

from __future__ import annotations

import os


class OSFileSystem:
    """
    Thin wrapper over `os` calls. The walker never touches the filesystem
    except through one of these methods, so tests can count or fake them.
    """

    def scandir_names(self, path: str) -> list[str]:
        """Entry names of a directory, in lexical order."""
        with os.scandir(path) as it:
            return sorted(entry.name for entry in it)

    def lstat(self, path: str) -> os.stat_result:
        return os.lstat(path)

    def stat(self, path: str) -> os.stat_result:
        return os.stat(path)

    def readlink(self, path: str) -> str:
        return os.readlink(path)

    def realpath(self, path: str) -> str:
        return os.path.realpath(path, strict=True)

    def listxattr(self, path: str) -> list[str]:
        return os.listxattr(path, follow_symlinks=False)

    def getxattr(self, path: str, name: str) -> bytes:
        return os.getxattr(path, name, follow_symlinks=False)
