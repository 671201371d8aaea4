"""
Single-pass, depth-first, lexically ordered walk of a directory tree that
yields filtered `StatRecord`s.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, TypeVar

from statwalk.errors import CancellationError, MetadataError, WalkIOError
from statwalk.fs import OSFileSystem
from statwalk.metadata import build_record, default_enrichers, select_permission_policy
from statwalk.patterns import PatternFilter
from statwalk.root import resolve_root
from statwalk.types import CancelToken, SinkFunc, StatRecord, Verdict, WalkOptions

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class _Vanished(Exception):
    """An entry disappeared between listing and inspection."""


class TreeWalker:
    """
    State for one walk of one root: the resolved root, the pattern filter, the
    enrichers and the cancellation token. Construction resolves the root and
    compiles patterns, so configuration errors surface before any traversal.
    Instances are single-use.
    """

    def __init__(
        self,
        root: str | Path,
        options: WalkOptions | None = None,
        *,
        cancel: CancelToken | None = None,
        fs: OSFileSystem | None = None,
    ) -> None:
        options = options or WalkOptions()
        self.fs: OSFileSystem = fs or OSFileSystem()
        self.root: str = resolve_root(root, self.fs)
        self._filter = PatternFilter(options.include, options.exclude)
        self._accept = options.accept
        self._policy = options.permissions or select_permission_policy()
        self._enrichers = (
            list(options.enrichers)
            if options.enrichers is not None
            else default_enrichers(self.fs)
        )
        self._cancel = cancel
        self._started = False

    def records(self) -> Iterator[StatRecord]:
        """Yield surviving records in lexical pre-order. The root itself is never yielded."""
        if self._started:
            raise RuntimeError("TreeWalker instances cannot be reused")
        self._started = True
        logger.debug("Walking %s", self.root)

        try:
            root_names = self._list_dir(self.root)
        except _Vanished:
            logger.debug("Walk root vanished before listing: %s", self.root)
            return
        stack: list[tuple[str, str, Iterator[str]]] = [(self.root, "", iter(root_names))]
        while stack:
            parent_abs, parent_rel, names = stack[-1]
            name = next(names, None)
            if name is None:
                stack.pop()
                continue
            abs_path = os.path.join(parent_abs, name)
            rel_path = f"{parent_rel}/{name}" if parent_rel else name
            try:
                descend, record = self._visit(abs_path, rel_path)
            except _Vanished:
                logger.debug("Entry vanished during walk: %s", rel_path)
                continue
            if record is not None:
                if self._cancel is not None and self._cancel.is_set():
                    raise CancellationError(f"walk of {self.root} cancelled at {rel_path}")
                yield record
            if descend:
                try:
                    children = self._list_dir(abs_path)
                except _Vanished:
                    logger.debug("Directory vanished during walk: %s", rel_path)
                    continue
                stack.append((abs_path, rel_path, iter(children)))

    def _visit(self, abs_path: str, rel_path: str) -> tuple[bool, StatRecord | None]:
        """Return whether to descend into the entry and the record to deliver, if any."""
        st = self._io(abs_path, "failed to stat", self.fs.lstat, abs_path)
        is_dir = stat.S_ISDIR(st.st_mode)
        verdict = self._filter.decide(rel_path, is_dir)
        if verdict is Verdict.PRUNE_SUBTREE:
            if is_dir:
                logger.debug("Pruned subtree: %s", rel_path)
            return False, None
        if verdict is Verdict.SKIP:
            return is_dir, None

        record = self._io(
            abs_path,
            "failed to read link",
            build_record,
            rel_path,
            abs_path,
            st,
            self.fs,
            self._policy,
        )
        self._enrich(abs_path, record, st)
        if self._accept is not None and not self._accept(record):
            return is_dir, None
        for enrich in self._enrichers:
            delivered = getattr(enrich, "delivered", None)
            if delivered is not None:
                delivered(record, st)
        return is_dir, record

    def _enrich(self, abs_path: str, record: StatRecord, st: os.stat_result) -> None:
        for enrich in self._enrichers:
            try:
                enrich(abs_path, record, st)
            except FileNotFoundError as e:
                raise _Vanished(abs_path) from e
            except Exception as e:
                raise MetadataError(record.path, f"failed to enrich metadata ({e})") from e

    def _list_dir(self, abs_path: str) -> list[str]:
        return self._io(abs_path, "failed to read directory", self.fs.scandir_names, abs_path)

    @staticmethod
    def _io(path: str, message: str, func: Callable[..., _T], *args: Any) -> _T:
        """Call `func(*args)`, mapping `OSError`s for `path` to walk errors."""
        try:
            return func(*args)
        except FileNotFoundError as e:
            raise _Vanished(path) from e
        except OSError as e:
            raise WalkIOError(path, f"{message} ({e.strerror or e})") from e


def iter_stats(
    root: str | Path,
    options: WalkOptions | None = None,
    *,
    cancel: CancelToken | None = None,
    fs: OSFileSystem | None = None,
) -> Iterator[StatRecord]:
    """
    Lazily walk `root` and yield filtered records in lexical pre-order.

    The root is resolved and the patterns compiled before this returns, so
    `ResolutionError`, `RootNotDirectoryError` and `PatternError` are raised
    here rather than on first iteration.
    """
    return TreeWalker(root, options, cancel=cancel, fs=fs).records()


def walk(
    root: str | Path,
    options: WalkOptions | None,
    sink: SinkFunc,
    *,
    cancel: CancelToken | None = None,
    fs: OSFileSystem | None = None,
) -> None:
    """
    Walk `root` and call `sink(path, record)` once per surviving record, in
    order. Walk failures are raised; an exception from `sink` stops the walk
    and propagates unchanged.
    """
    for record in iter_stats(root, options, cancel=cancel, fs=fs):
        sink(record.path, record)
