"""
Ordered, filtered stream of file metadata records for a directory tree.

Records come out in lexical pre-order with `/`-separated paths relative to the
walk root, ready for a tar writer, snapshot builder, or diff engine.

Usage::

    from statwalk import WalkOptions, walk

    def sink(path, record):
        print(path, oct(record.mode), record.size)

    walk(
        "build-context",
        WalkOptions(include=["src", "Dockerfile"], exclude=["**/*.pyc"]),
        sink,
    )
"""

from statwalk.errors import (
    CancellationError,
    MetadataError,
    PatternError,
    ResolutionError,
    RootNotDirectoryError,
    WalkError,
    WalkIOError,
)
from statwalk.fs import OSFileSystem
from statwalk.metadata import (
    HardlinkEnricher,
    PlatformCapabilities,
    PreservePermissions,
    SynthesizedExecPermissions,
    UnixOwnerEnricher,
    XattrEnricher,
    default_enrichers,
    host_capabilities,
    select_permission_policy,
)
from statwalk.patterns import PatternFilter
from statwalk.root import resolve_root
from statwalk.types import StatRecord, Verdict, WalkOptions
from statwalk.walker import TreeWalker, iter_stats, walk

__all__ = [
    "CancellationError",
    "HardlinkEnricher",
    "MetadataError",
    "OSFileSystem",
    "PatternError",
    "PatternFilter",
    "PlatformCapabilities",
    "PreservePermissions",
    "ResolutionError",
    "RootNotDirectoryError",
    "StatRecord",
    "SynthesizedExecPermissions",
    "TreeWalker",
    "UnixOwnerEnricher",
    "Verdict",
    "WalkError",
    "WalkIOError",
    "WalkOptions",
    "XattrEnricher",
    "default_enrichers",
    "host_capabilities",
    "iter_stats",
    "resolve_root",
    "select_permission_policy",
    "walk",
]
