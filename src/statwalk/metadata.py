"""
Conversion of native `lstat` results into portable `StatRecord`s, plus the
pluggable permission policies and platform enrichers applied to them.
"""

from __future__ import annotations

import errno
import os
import stat
import sys
from dataclasses import dataclass

from statwalk.fs import OSFileSystem
from statwalk.types import Enricher, PermissionPolicy, StatRecord

_PERM_BITS = 0o777


@dataclass(frozen=True)
class PlatformCapabilities:
    """What the host's native permission model can express."""

    exec_bit: bool = True
    xattrs: bool = True
    ownership: bool = True


def host_capabilities() -> PlatformCapabilities:
    if sys.platform == "win32":
        return PlatformCapabilities(exec_bit=False, xattrs=False, ownership=False)
    return PlatformCapabilities(exec_bit=True, xattrs=hasattr(os, "listxattr"), ownership=True)


class PreservePermissions:
    """Keep native permission bits as they are."""

    def normalize(self, mode: int) -> int:
        return mode


@dataclass(frozen=True)
class SynthesizedExecPermissions:
    """
    For hosts without a meaningful executable bit: mark every entry executable
    for user, group and other, then clamp to `ceiling`. Type bits are kept.
    """

    ceiling: int = 0o755

    def normalize(self, mode: int) -> int:
        perm = mode & _PERM_BITS
        perm |= 0o111
        perm &= self.ceiling
        return (mode & ~_PERM_BITS) | perm


def select_permission_policy(caps: PlatformCapabilities | None = None) -> PermissionPolicy:
    caps = caps or host_capabilities()
    if caps.exec_bit:
        return PreservePermissions()
    return SynthesizedExecPermissions()


def build_record(
    rel_path: str,
    abs_path: str,
    st: os.stat_result,
    fs: OSFileSystem,
    policy: PermissionPolicy,
) -> StatRecord:
    """
    Build the record for one entry. Symlink targets are read but never
    followed. `OSError`s from the link read propagate to the caller.
    """
    mode = stat.S_IFMT(st.st_mode) | stat.S_IMODE(st.st_mode)
    record = StatRecord(
        path=rel_path,
        mode=policy.normalize(mode),
        size=st.st_size if stat.S_ISREG(st.st_mode) else 0,
        mod_time=st.st_mtime_ns,
    )
    if stat.S_ISLNK(st.st_mode):
        record.linkname = fs.readlink(abs_path)
    return record


class UnixOwnerEnricher:
    """Numeric owner and group, and major/minor numbers for device nodes."""

    def __call__(self, path: str, record: StatRecord, st: os.stat_result) -> None:
        record.uid = st.st_uid
        record.gid = st.st_gid
        if stat.S_ISCHR(st.st_mode) or stat.S_ISBLK(st.st_mode):
            record.devmajor = os.major(st.st_rdev)
            record.devminor = os.minor(st.st_rdev)


class HardlinkEnricher:
    """
    Points later links of a multiply-linked regular file at the first emitted
    path for the same inode, via `linkname`. Holds per-walk state.

    An inode is registered only through `delivered`, once its record has
    passed the accept hook, so a rejected path is never used as a link target.
    """

    def __init__(self) -> None:
        self._seen: dict[tuple[int, int], str] = {}

    def __call__(self, path: str, record: StatRecord, st: os.stat_result) -> None:
        if not stat.S_ISREG(st.st_mode) or st.st_nlink <= 1:
            return
        first = self._seen.get((st.st_dev, st.st_ino))
        if first is not None:
            record.linkname = first

    def delivered(self, record: StatRecord, st: os.stat_result) -> None:
        if not stat.S_ISREG(st.st_mode) or st.st_nlink <= 1:
            return
        self._seen.setdefault((st.st_dev, st.st_ino), record.path)


class XattrEnricher:
    """Extended attributes of the entry itself (links are not followed)."""

    _UNSUPPORTED = frozenset({errno.ENOTSUP, errno.EOPNOTSUPP})

    def __init__(self, fs: OSFileSystem | None = None) -> None:
        self._fs: OSFileSystem = fs or OSFileSystem()

    def __call__(self, path: str, record: StatRecord, st: os.stat_result) -> None:
        try:
            names = self._fs.listxattr(path)
        except OSError as e:
            if e.errno in self._UNSUPPORTED:
                return
            raise
        for name in sorted(names):
            record.xattrs[name] = self._fs.getxattr(path, name)


def default_enrichers(
    fs: OSFileSystem | None = None, caps: PlatformCapabilities | None = None
) -> list[Enricher]:
    """A fresh set of enrichers for one walk on a host with `caps`."""
    caps = caps or host_capabilities()
    enrichers: list[Enricher] = []
    if caps.ownership:
        enrichers.append(UnixOwnerEnricher())
        enrichers.append(HardlinkEnricher())
    if caps.xattrs:
        enrichers.append(XattrEnricher(fs))
    return enrichers
