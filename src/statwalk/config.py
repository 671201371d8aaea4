"""
TOML-based config file loading for statwalk.

Searches for `.statwalk.toml`, `statwalk.toml`, or `pyproject.toml [tool.statwalk]`
walking up from a start directory. Explicit CLI flags take precedence over
config file values.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, cast

from statwalk.types import WalkOptions

if sys.version_info >= (3, 11):
    import tomllib  # pyright: ignore[reportUnreachable]
else:
    import tomli as tomllib  # type: ignore[no-redef]  # pyright: ignore[reportUnreachable]


class ConfigError(ValueError):
    """A config file exists but cannot be used."""


@dataclass
class WalkConfig:
    """
    Parsed config from a TOML file. Fields are `None` when not set, so a
    config can be told apart from one that explicitly sets an empty list.
    """

    include: list[str] | None = None
    exclude: list[str] | None = None

    def to_options(self) -> WalkOptions:
        return WalkOptions(include=self.include, exclude=self.exclude)


# Config file search order (first match wins within each directory level)
_CONFIG_FILENAMES = [".statwalk.toml", "statwalk.toml", "pyproject.toml"]

# Mapping from TOML kebab-case keys to Python snake_case field names
_KEBAB_TO_SNAKE: dict[str, str] = {
    "include-patterns": "include",
    "exclude-patterns": "exclude",
}

_VALID_FIELDS = {f.name for f in fields(WalkConfig)}


def find_config_file(start_dir: Path) -> Path | None:
    """
    Walk up from `start_dir` looking for a config file. Search order per
    directory: `.statwalk.toml` > `statwalk.toml` > `pyproject.toml` (only if it
    has `[tool.statwalk]`).
    """
    current = start_dir.resolve()
    while True:
        for filename in _CONFIG_FILENAMES:
            candidate = current / filename
            if candidate.is_file():
                if filename == "pyproject.toml":
                    if _pyproject_has_statwalk_section(candidate):
                        return candidate
                else:
                    return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent
    return None


def _pyproject_has_statwalk_section(path: Path) -> bool:
    try:
        data = tomllib.loads(path.read_text())
        return "statwalk" in data.get("tool", {})
    except (tomllib.TOMLDecodeError, OSError):
        return False


def load_config(config_path: Path) -> WalkConfig:
    """
    Load a `WalkConfig` from a TOML file, extracting `[tool.statwalk]` from
    `pyproject.toml`. Raises `ConfigError` for unparseable files or values of
    the wrong type.
    """
    try:
        data = tomllib.loads(config_path.read_text())
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {config_path}: {e}") from e

    if config_path.name == "pyproject.toml":
        data = data.get("tool", {}).get("statwalk", {})

    return _parse_config_data(data, config_path)


def _parse_config_data(data: dict[str, Any], source: Path) -> WalkConfig:
    """Parse a flat or sectioned TOML dict into WalkConfig."""
    # Flatten sections: a [walk] table merges into top level
    flat: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            for sub_key, sub_value in cast(dict[str, Any], value).items():
                flat[sub_key] = sub_value
        else:
            flat[key] = value

    mapped: dict[str, Any] = {}
    for key, value in flat.items():
        snake_key = _KEBAB_TO_SNAKE.get(key, key.replace("-", "_"))
        if snake_key not in _VALID_FIELDS:
            continue
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"`{key}` in {source} must be a list of strings")
        mapped[snake_key] = list(cast(list[str], value))

    return WalkConfig(**mapped)


def merge_cli_with_config(
    include: list[str] | None,
    exclude: list[str] | None,
    config: WalkConfig | None,
) -> WalkConfig:
    """
    Merge CLI pattern flags with config file settings. A flag given on the
    command line (non-`None`) replaces the config value for that field.
    """
    merged = WalkConfig() if config is None else WalkConfig(config.include, config.exclude)
    if include is not None:
        merged.include = include
    if exclude is not None:
        merged.exclude = exclude
    return merged
