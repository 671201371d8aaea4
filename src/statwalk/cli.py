#!/usr/bin/env python3
"""
statwalk: Ordered, filtered file metadata for a directory tree

Common usage:
  statwalk .
  statwalk src --include 'src/*' --exclude '*.pyc'
  statwalk . --exclude 'secrets/*' --exclude '!secrets/readme.txt'
  statwalk . --format json

Patterns may also be set in `.statwalk.toml`, `statwalk.toml`, or
`pyproject.toml [tool.statwalk]`; command-line patterns replace config values.
"""

from __future__ import annotations

import argparse
import importlib.metadata
import json
import logging
import signal
import sys
import threading
from dataclasses import asdict, dataclass
from pathlib import Path

from statwalk.config import ConfigError, find_config_file, load_config, merge_cli_with_config
from statwalk.errors import (
    CancellationError,
    PatternError,
    ResolutionError,
    RootNotDirectoryError,
    WalkError,
)
from statwalk.types import StatRecord
from statwalk.walker import iter_stats

logger = logging.getLogger(__name__)


@dataclass
class Options:
    """Command-line options for the statwalk tool."""

    root: str | None
    include: list[str] | None
    exclude: list[str] | None
    format: str
    no_config: bool
    verbose: bool
    version: bool


def _parse_args(args: list[str] | None = None) -> Options:
    # Use the module's docstring as the description
    module_doc = __doc__ or ""
    doc_parts = module_doc.split("\n\n")
    description = doc_parts[0]
    epilog = "\n\n".join(doc_parts[1:])

    parser = argparse.ArgumentParser(
        description=description,
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("root", nargs="?", default=None, help="Directory to walk")
    parser.add_argument(
        "--include",
        action="append",
        default=None,
        metavar="PATTERN",
        help="Only emit paths matching this glob (or under a matching directory). Can be repeated",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=None,
        metavar="PATTERN",
        help="Skip paths matching this gitignore-style pattern; prefix with '!' to re-include. "
        "Can be repeated",
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format, one record per line (default: %(default)s)",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        dest="no_config",
        help="Ignore config files",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="store_true", help="Show version information and exit")
    opts = parser.parse_args(args)

    return Options(
        root=opts.root,
        include=opts.include,
        exclude=opts.exclude,
        format=opts.format,
        no_config=opts.no_config,
        verbose=opts.verbose,
        version=opts.version,
    )


def format_record(record: StatRecord, fmt: str) -> str:
    if fmt == "json":
        data = asdict(record)
        data["xattrs"] = {k: v.hex() for k, v in record.xattrs.items()}
        return json.dumps(data, sort_keys=True)
    line = f"{record.mode:07o} {record.size:>10} {record.path}"
    if record.linkname:
        line += f" -> {record.linkname}"
    return line


def main(args: list[str] | None = None) -> int:
    """
    Main entry point for the statwalk CLI.

    Returns an exit code: 0 for success, 1 for usage, config or root errors,
    2 for failures during the walk, 130 if interrupted.
    """
    options = _parse_args(args)

    if options.version:
        try:
            version = importlib.metadata.version("statwalk")
            print(f"v{version}")
        except importlib.metadata.PackageNotFoundError:
            print("unknown (package not installed)")
        return 0

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if options.root is None:
        print("Error: No root directory given (use '.' for the current directory).", file=sys.stderr)
        return 1

    config = None
    if not options.no_config:
        config_path = find_config_file(Path.cwd())
        if config_path:
            try:
                config = load_config(config_path)
            except ConfigError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            logger.debug("Loaded config from %s", config_path)
    walk_options = merge_cli_with_config(options.include, options.exclude, config).to_options()

    cancel = threading.Event()
    try:
        records = iter_stats(options.root, walk_options, cancel=cancel)
    except (ResolutionError, RootNotDirectoryError, PatternError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    # Ctrl-C stops the walk at the next record boundary.
    installed = False
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, lambda _signum, _frame: cancel.set())
        installed = True
    count = 0
    try:
        for record in records:
            print(format_record(record, options.format))
            count += 1
    except CancellationError as e:
        print(f"Cancelled: {e}", file=sys.stderr)
        return 130
    except WalkError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    finally:
        if installed:
            # `None` means the old handler was not installed from Python.
            signal.signal(
                signal.SIGINT,
                previous_handler if previous_handler is not None else signal.SIG_DFL,
            )

    logger.info("Walk of %s complete: %d records", options.root, count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
