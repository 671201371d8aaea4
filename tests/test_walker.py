"""Tests for the tree walker."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

import pytest

from statwalk import (
    CancellationError,
    MetadataError,
    OSFileSystem,
    PatternError,
    StatRecord,
    TreeWalker,
    WalkIOError,
    WalkOptions,
    iter_stats,
    walk,
)


class CountingFileSystem(OSFileSystem):
    """Records every path the walker inspects."""

    def __init__(self) -> None:
        self.lstat_calls: list[str] = []
        self.listed: list[str] = []

    def lstat(self, path: str) -> os.stat_result:
        self.lstat_calls.append(path)
        return super().lstat(path)

    def scandir_names(self, path: str) -> list[str]:
        self.listed.append(path)
        return super().scandir_names(path)


class FlakyFileSystem(OSFileSystem):
    """Raises a chosen error for paths ending with a given name."""

    def __init__(self, name: str, error: OSError, on: str = "lstat") -> None:
        self.name = name
        self.error = error
        self.on = on

    def lstat(self, path: str) -> os.stat_result:
        if self.on == "lstat" and os.path.basename(path) == self.name:
            raise self.error
        return super().lstat(path)

    def scandir_names(self, path: str) -> list[str]:
        if self.on == "scandir" and os.path.basename(path) == self.name:
            raise self.error
        return super().scandir_names(path)


def _make_tree(root: Path) -> None:
    """Create `a/b.txt`, `a/c/d.txt` and `e.txt`."""
    (root / "a" / "c").mkdir(parents=True)
    (root / "a" / "b.txt").write_text("b")
    (root / "a" / "c" / "d.txt").write_text("d")
    (root / "e.txt").write_text("e")


def _paths(root: Path, options: WalkOptions | None = None, **kwargs) -> list[str]:
    return [r.path for r in iter_stats(root, options, **kwargs)]


def test_walk_all_entries_in_lexical_preorder(tmp_path: Path):
    _make_tree(tmp_path)
    assert _paths(tmp_path) == ["a", "a/b.txt", "a/c", "a/c/d.txt", "e.txt"]


def test_siblings_sorted_before_descending(tmp_path: Path):
    """A directory's children come straight after it, even if a sibling sorts before `/`."""
    (tmp_path / "a").mkdir()
    (tmp_path / "a" / "x").write_text("")
    (tmp_path / "a-b").write_text("")
    (tmp_path / "a.txt").write_text("")
    (tmp_path / "B").write_text("")
    assert _paths(tmp_path) == ["B", "a", "a/x", "a-b", "a.txt"]


def test_root_never_emitted_and_paths_are_relative(tmp_path: Path):
    _make_tree(tmp_path)
    for path in _paths(tmp_path):
        assert path
        assert path not in (".", "")
        assert not path.startswith(("./", "/"))
        assert "\\" not in path


def test_empty_root_yields_nothing(tmp_path: Path):
    assert _paths(tmp_path) == []


def test_include_scenario(tmp_path: Path):
    _make_tree(tmp_path)
    assert _paths(tmp_path, WalkOptions(include=["a/*"])) == [
        "a",
        "a/b.txt",
        "a/c",
        "a/c/d.txt",
    ]


def test_include_literal_directory_includes_whole_subtree(tmp_path: Path):
    _make_tree(tmp_path)
    assert _paths(tmp_path, WalkOptions(include=["a"])) == ["a", "a/b.txt", "a/c", "a/c/d.txt"]


def test_exclude_negation_scenario(tmp_path: Path):
    secrets = tmp_path / "secrets"
    secrets.mkdir()
    (secrets / "key").write_text("k")
    (secrets / "readme.txt").write_text("r")
    options = WalkOptions(exclude=["secrets/*", "!secrets/readme.txt"])
    assert _paths(tmp_path, options) == ["secrets", "secrets/readme.txt"]


def test_excluded_directory_children_are_never_read(tmp_path: Path):
    _make_tree(tmp_path)
    nm = tmp_path / "node_modules" / "pkg"
    nm.mkdir(parents=True)
    (nm / "index.js").write_text("")
    fs = CountingFileSystem()

    paths = _paths(tmp_path, WalkOptions(exclude=["node_modules"]), fs=fs)

    assert "node_modules" not in paths
    assert not any(p.startswith("node_modules") for p in paths)
    pruned = os.path.join(os.path.realpath(tmp_path), "node_modules")
    assert pruned in fs.lstat_calls
    assert not any(p.startswith(pruned + os.sep) for p in fs.lstat_calls)
    assert pruned not in fs.listed


def test_include_prunes_unreachable_directories(tmp_path: Path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("")
    (tmp_path / "docs" / "deep").mkdir(parents=True)
    (tmp_path / "docs" / "deep" / "guide.md").write_text("")
    fs = CountingFileSystem()

    paths = _paths(tmp_path, WalkOptions(include=["src/*.py"]), fs=fs)

    assert paths == ["src", "src/main.py"]
    docs = os.path.join(os.path.realpath(tmp_path), "docs")
    assert docs not in fs.listed
    assert not any(p.startswith(docs + os.sep) for p in fs.lstat_calls)


def test_negation_keeps_excluded_directory_open(tmp_path: Path):
    build = tmp_path / "build" / "reports"
    build.mkdir(parents=True)
    (build / "summary.md").write_text("")
    (build / "out.o").write_text("")
    (tmp_path / "cache").mkdir()
    (tmp_path / "cache" / "notes.md").write_text("")
    fs = CountingFileSystem()

    options = WalkOptions(exclude=["build", "cache", "!build/reports/*.md"])
    paths = _paths(tmp_path, options, fs=fs)

    assert paths == ["build/reports/summary.md"]
    assert os.path.join(os.path.realpath(tmp_path), "cache") not in fs.listed


def test_include_with_deep_exclude_negation(tmp_path: Path):
    reports = tmp_path / "build" / "r"
    reports.mkdir(parents=True)
    (reports / "keep.md").write_text("")
    (reports / "drop.md").write_text("")
    (tmp_path / "build" / "other").mkdir()
    (tmp_path / "build" / "other" / "x.md").write_text("")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "guide.md").write_text("")
    fs = CountingFileSystem()

    options = WalkOptions(include=["build/*"], exclude=["build/", "!build/r/keep.md"])
    paths = _paths(tmp_path, options, fs=fs)

    assert paths == ["build/r/keep.md"]
    root = os.path.realpath(tmp_path)
    assert os.path.join(root, "build", "r") in fs.listed
    assert os.path.join(root, "build", "other") not in fs.listed
    assert os.path.join(root, "docs") not in fs.listed


def test_symlink_recorded_not_followed(tmp_path: Path):
    target = tmp_path / "target"
    target.mkdir()
    (target / "f").write_text("f")
    os.symlink("target", tmp_path / "link")

    records = {r.path: r for r in iter_stats(tmp_path)}

    assert set(records) == {"link", "target", "target/f"}
    link = records["link"]
    assert link.is_symlink
    assert not link.is_dir
    assert link.linkname == "target"


def test_dangling_symlink_is_recorded(tmp_path: Path):
    os.symlink("missing", tmp_path / "broken")
    records = list(iter_stats(tmp_path))
    assert [r.path for r in records] == ["broken"]
    assert records[0].linkname == "missing"


def test_accept_hook_rejects_records_but_still_descends(tmp_path: Path):
    _make_tree(tmp_path)
    options = WalkOptions(accept=lambda record: not record.is_dir)
    assert _paths(tmp_path, options) == ["a/b.txt", "a/c/d.txt", "e.txt"]


def test_accept_hook_sees_built_record(tmp_path: Path):
    _make_tree(tmp_path)
    seen: list[StatRecord] = []

    def accept(record: StatRecord) -> bool:
        seen.append(record)
        return record.name != "b.txt"

    paths = _paths(tmp_path, WalkOptions(accept=accept))
    assert "a/b.txt" not in paths
    assert [r.path for r in seen] == ["a", "a/b.txt", "a/c", "a/c/d.txt", "e.txt"]


def test_walk_delivers_records_to_sink_in_order(tmp_path: Path):
    _make_tree(tmp_path)
    delivered: list[tuple[str, StatRecord]] = []
    walk(tmp_path, None, lambda path, record: delivered.append((path, record)))
    assert [p for p, _ in delivered] == ["a", "a/b.txt", "a/c", "a/c/d.txt", "e.txt"]
    assert all(p == r.path for p, r in delivered)


def test_sink_exception_propagates(tmp_path: Path):
    _make_tree(tmp_path)

    class Stop(Exception):
        pass

    def sink(path: str, record: StatRecord) -> None:
        if path == "a/c":
            raise Stop(path)

    with pytest.raises(Stop):
        walk(tmp_path, WalkOptions(), sink)


def test_cancellation_stops_delivery(tmp_path: Path):
    _make_tree(tmp_path)
    cancel = threading.Event()
    delivered: list[str] = []

    def sink(path: str, record: StatRecord) -> None:
        delivered.append(path)
        if len(delivered) == 2:
            cancel.set()

    with pytest.raises(CancellationError):
        walk(tmp_path, None, sink, cancel=cancel)
    assert delivered == ["a", "a/b.txt"]


def test_cancelled_before_start_delivers_nothing(tmp_path: Path):
    _make_tree(tmp_path)
    cancel = threading.Event()
    cancel.set()
    delivered: list[str] = []
    with pytest.raises(CancellationError):
        walk(tmp_path, None, lambda path, record: delivered.append(path), cancel=cancel)
    assert delivered == []


def test_repeated_walks_are_identical(tmp_path: Path):
    _make_tree(tmp_path)
    os.symlink("e.txt", tmp_path / "z-link")
    first = list(iter_stats(tmp_path))
    second = list(iter_stats(tmp_path))
    assert first == second


def test_vanished_entry_is_skipped(tmp_path: Path):
    _make_tree(tmp_path)
    fs = FlakyFileSystem("b.txt", FileNotFoundError(2, "No such file or directory"))
    assert _paths(tmp_path, fs=fs) == ["a", "a/c", "a/c/d.txt", "e.txt"]


def test_vanished_directory_listing_prunes_only_that_directory(tmp_path: Path):
    _make_tree(tmp_path)
    fs = FlakyFileSystem("c", FileNotFoundError(2, "No such file or directory"), on="scandir")
    assert _paths(tmp_path, fs=fs) == ["a", "a/b.txt", "a/c", "e.txt"]


def test_root_vanished_before_listing_yields_nothing(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
):
    _make_tree(tmp_path)
    root_name = os.path.basename(os.path.realpath(tmp_path))
    fs = FlakyFileSystem(root_name, FileNotFoundError(2, "No such file or directory"), on="scandir")
    with caplog.at_level(logging.DEBUG, logger="statwalk.walker"):
        assert _paths(tmp_path, fs=fs) == []
    assert "vanished before listing" in caplog.text


def test_unreadable_directory_aborts_with_path(tmp_path: Path):
    _make_tree(tmp_path)
    fs = FlakyFileSystem("c", PermissionError(13, "Permission denied"), on="scandir")
    delivered: list[str] = []
    with pytest.raises(WalkIOError) as excinfo:
        walk(tmp_path, None, lambda path, record: delivered.append(path), fs=fs)
    assert excinfo.value.path.endswith(os.path.join("a", "c"))
    assert isinstance(excinfo.value.__cause__, PermissionError)
    assert delivered == ["a", "a/b.txt", "a/c"]


def test_stat_failure_aborts(tmp_path: Path):
    _make_tree(tmp_path)
    fs = FlakyFileSystem("e.txt", OSError(5, "Input/output error"))
    with pytest.raises(WalkIOError, match="e.txt"):
        list(iter_stats(tmp_path, fs=fs))


def test_enricher_failure_is_metadata_error(tmp_path: Path):
    _make_tree(tmp_path)

    def broken(path: str, record: StatRecord, st: os.stat_result) -> None:
        if record.path == "a/c":
            raise PermissionError(13, "Permission denied")

    with pytest.raises(MetadataError) as excinfo:
        list(iter_stats(tmp_path, WalkOptions(enrichers=[broken])))
    assert excinfo.value.path == "a/c"


def test_enricher_vanished_entry_is_skipped(tmp_path: Path):
    _make_tree(tmp_path)

    def vanishing(path: str, record: StatRecord, st: os.stat_result) -> None:
        if record.path == "a/c":
            raise FileNotFoundError(2, "No such file or directory", path)

    assert _paths(tmp_path, WalkOptions(enrichers=[vanishing])) == ["a", "a/b.txt", "e.txt"]


def test_enrichers_run_for_emitted_records_only(tmp_path: Path):
    _make_tree(tmp_path)
    calls: list[str] = []

    def record_call(path: str, record: StatRecord, st: os.stat_result) -> None:
        calls.append(record.path)

    list(iter_stats(tmp_path, WalkOptions(include=["a/c"], enrichers=[record_call])))
    assert calls == ["a", "a/c", "a/c/d.txt"]


def test_pattern_errors_raised_before_iteration(tmp_path: Path):
    with pytest.raises(PatternError):
        iter_stats(tmp_path, WalkOptions(include=["oops\\"]))


def test_root_resolved_through_symlink(tmp_path: Path):
    real = tmp_path / "real"
    real.mkdir()
    (real / "f").write_text("")
    os.symlink("real", tmp_path / "alias")
    walker = TreeWalker(tmp_path / "alias")
    assert walker.root == os.path.realpath(real)
    assert [r.path for r in walker.records()] == ["f"]


def test_walker_is_single_use(tmp_path: Path):
    walker = TreeWalker(tmp_path)
    list(walker.records())
    with pytest.raises(RuntimeError):
        list(walker.records())


def test_record_metadata(tmp_path: Path):
    (tmp_path / "dir").mkdir()
    f = tmp_path / "file.bin"
    f.write_bytes(b"x" * 123)
    records = {r.path: r for r in iter_stats(tmp_path)}

    file_record = records["file.bin"]
    assert file_record.is_regular
    assert file_record.size == 123
    assert file_record.mod_time == os.lstat(f).st_mtime_ns
    assert file_record.linkname == ""

    dir_record = records["dir"]
    assert dir_record.is_dir
    assert dir_record.size == 0
