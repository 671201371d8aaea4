"""Record, verdict and configuration types for tree walking."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol


class Verdict(Enum):
    """Filter decision for a single visited entry."""

    EMIT = "emit"
    SKIP = "skip"
    PRUNE_SUBTREE = "prune_subtree"


@dataclass
class StatRecord:
    """
    Portable metadata for one entry under the walk root.

    `path` is relative to the root and always `/`-separated. `mode` uses the
    POSIX `st_mode` layout (type bits from `S_IFMT` plus permission bits), so it
    can be handed directly to tar writers. `mod_time` is in nanoseconds since
    the epoch. `linkname` is the raw symlink target, or for hardlinked files the
    path of the first record that shared the inode.
    """

    path: str
    mode: int
    size: int = 0
    mod_time: int = 0
    linkname: str = ""
    uid: int = 0
    gid: int = 0
    devmajor: int = 0
    devminor: int = 0
    xattrs: dict[str, bytes] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def perm(self) -> int:
        return stat.S_IMODE(self.mode)

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def mod_datetime(self) -> datetime:
        """Modification time as an aware UTC datetime (microsecond precision)."""
        seconds, nanos = divmod(self.mod_time, 1_000_000_000)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=nanos // 1000)


class Enricher(Protocol):
    """
    Platform hook that adds optional metadata to a record before delivery.

    `path` is the absolute host path; `st` is the `lstat` result already taken
    for the entry. Raising aborts the walk with a `MetadataError`.

    An enricher may also define `delivered(record, st)`, called once the
    record has passed the accept hook and is about to be delivered.
    """

    def __call__(self, path: str, record: StatRecord, st: os.stat_result) -> None: ...


class PermissionPolicy(Protocol):
    """Maps a native `st_mode` to the portable mode stored on records."""

    def normalize(self, mode: int) -> int: ...


class CancelToken(Protocol):
    """Anything with an `is_set()` method, such as `threading.Event`."""

    def is_set(self) -> bool: ...


AcceptFunc = Callable[[StatRecord], bool]
SinkFunc = Callable[[str, StatRecord], None]


@dataclass
class WalkOptions:
    """
    Options for a single walk.

    `include=None` (or empty) means every entry is eligible; `exclude=None` (or
    empty) means nothing is excluded. Exclude patterns use gitignore syntax and
    may be negated with a leading `!`. `enrichers=None` selects the host
    defaults; `permissions=None` selects a policy from host capabilities.
    """

    include: list[str] | None = None
    exclude: list[str] | None = None
    accept: AcceptFunc | None = None
    enrichers: Sequence[Enricher] | None = None
    permissions: PermissionPolicy | None = None
