"""
Include/exclude filtering for tree walks.

Both pattern lists use gitignore syntax via `pathspec`. Include patterns are
anchored at the walk root (`*` and `?` never cross `/`); exclude patterns
follow plain gitignore rules, including `!` negations that re-include paths.

A `PatternFilter` carries per-walk state (the last included directory) and
must not be shared between walks.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import pathspec

from statwalk.errors import PatternError
from statwalk.types import Verdict

# Characters that end the literal prefix of a pattern.
_WILDCARD_CHARS = frozenset("*?[\\")


def literal_prefix(pattern: str) -> str:
    """The part of `pattern` before its first wildcard or escape character."""
    for i, c in enumerate(pattern):
        if c in _WILDCARD_CHARS:
            return pattern[:i]
    return pattern


def could_contain_match(path: str, prefixes: Sequence[str]) -> bool:
    """
    True if some path below `path` might start with one of `prefixes`.
    False is a proof: nothing under `path` can match.
    """
    for prefix in prefixes:
        chk = path[: len(prefix)] if len(prefix) < len(path) else path
        if prefix.startswith(chk):
            return True
    return False


def _negation_prefix(pattern: str) -> str:
    """
    Literal prefix of a `!pattern` exclude line. Patterns without an inner `/`
    match at any depth, so they get an empty prefix that reaches everywhere.
    """
    body = pattern[1:].rstrip()
    if "/" not in body.rstrip("/"):
        return ""
    return literal_prefix(body.lstrip("/"))


def _compile(kind: str, patterns: Iterable[str]) -> pathspec.GitIgnoreSpec:
    lines = list(patterns)
    try:
        return pathspec.GitIgnoreSpec.from_lines(lines)
    except ValueError as e:
        raise PatternError(f"invalid {kind} patterns {lines}: {e}") from e


class PatternFilter:
    """
    Decides, per visited entry, whether to emit it, skip it, or prune the
    subtree beneath it. Include rules are evaluated first; exclusion can only
    veto an included path.
    """

    def __init__(
        self, include: Sequence[str] | None = None, exclude: Sequence[str] | None = None
    ) -> None:
        self._include_spec: pathspec.GitIgnoreSpec | None = None
        self._include_prefixes: list[str] = []
        self._last_included_dir: str | None = None
        if include:
            anchored = [p.lstrip("/") for p in include]
            self._include_spec = _compile("include", ("/" + p for p in anchored))
            # Built once per walk.
            self._include_prefixes = [literal_prefix(p) for p in anchored]

        self._exclude_spec: pathspec.GitIgnoreSpec | None = None
        self._negation_prefixes: list[str] = []
        if exclude:
            self._exclude_spec = _compile("exclude", exclude)
            self._negation_prefixes = [
                _negation_prefix(p) for p in exclude if p.startswith("!")
            ]

    @property
    def has_negations(self) -> bool:
        return bool(self._negation_prefixes)

    def decide(self, path: str, is_dir: bool) -> Verdict:
        """Filter verdict for a relative, slash-separated, non-root `path`."""
        if self._include_spec is not None and not self._included(path, is_dir):
            if not is_dir:
                return Verdict.SKIP
            if not could_contain_match(path, self._include_prefixes):
                return Verdict.PRUNE_SUBTREE
            # A directory on the way to a possible match is emitted like an
            # included one, unless exclusion says otherwise.
        if self._exclude_spec is not None:
            return self._decide_exclude(path, is_dir)
        return Verdict.EMIT

    def _included(self, path: str, is_dir: bool) -> bool:
        last = self._last_included_dir
        if last is not None and path.startswith(last + "/"):
            return True
        assert self._include_spec is not None
        if self._include_spec.match_file(path + "/" if is_dir else path):
            if is_dir:
                self._last_included_dir = path
            return True
        return False

    def _decide_exclude(self, path: str, is_dir: bool) -> Verdict:
        assert self._exclude_spec is not None
        if not self._exclude_spec.match_file(path + "/" if is_dir else path):
            return Verdict.EMIT
        if not is_dir:
            return Verdict.SKIP
        if could_contain_match(path + "/", self._negation_prefixes):
            # A negation might re-include something below.
            return Verdict.SKIP
        return Verdict.PRUNE_SUBTREE
