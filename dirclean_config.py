#!/usr/bin/env python3
"""
Dirclean Configuration

Loads cleanup rules from a TOML file. A `[defaults]` table is layered under
every `[[rules]]` entry, and CLI overrides are layered on top of both. Each
rule is validated on its own so a broken rule never takes its siblings down.
"""

import os
import re
import tomllib
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

EXAMPLE_CONFIG_FILE = Path(__file__).parent / "dirclean.example.toml"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_LOG_FILE = "dirclean.log"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MODE = "dry-run"

SURVEY_MIN_DIR_SIZE = 100 * 1024**2
SURVEY_UNUSED_DAYS = 30
SURVEY_LIMIT = 10


class ConfigError(ValueError):
    """Raised for unreadable config files, invalid rules and bad size strings."""


# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------

SIZE_UNITS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*([A-Za-z]+)\s*$")


def parse_size(value: Any) -> int:
    """Parse a size like '10MB' or '1.5 GB' into bytes.

    Integers are taken as byte counts. Units use binary multiples.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid file size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"File size must not be negative: {value}")
        return value
    if not isinstance(value, str):
        raise ConfigError(f"Invalid file size: {value!r}")

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ConfigError(f"Invalid file size format: {value!r} (expected e.g. '10MB')")

    magnitude, unit = match.groups()
    multiplier = SIZE_UNITS.get(unit.upper())
    if multiplier is None:
        raise ConfigError(f"Unknown size unit {unit!r} in {value!r}. Allowed units: {', '.join(SIZE_UNITS)}")
    return int(float(magnitude) * multiplier)


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


class Mode(Enum):
    ANALYZE = "analyze"
    DRY_RUN = "dry-run"
    INTERACTIVE = "interactive"
    SCHEDULED = "scheduled"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def parse(cls, text: Optional[str]) -> "Mode":
        normalized = str(text or "").strip().lower().replace("_", "-")
        for mode in cls:
            if mode is not cls.UNRECOGNIZED and mode.value == normalized:
                return mode
        return cls.UNRECOGNIZED

    @property
    def effective(self) -> "Mode":
        """The mode actually applied; unrecognized input runs as dry-run."""
        return Mode.DRY_RUN if self is Mode.UNRECOGNIZED else self


# ---------------------------------------------------------------------------
# Rules and run settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    age_days: int
    paths: tuple[str, ...]
    mode: Mode = Mode.DRY_RUN
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    clean_broken_symlinks: bool = False
    mode_text: str = DEFAULT_MODE
    index: int = 0

    @property
    def label(self) -> str:
        return f"rule #{self.index + 1}"


@dataclass(frozen=True)
class SizeOverrides:
    """Size bounds given on the command line; they replace configured bounds."""

    min_size: Optional[int] = None
    max_size: Optional[int] = None


@dataclass(frozen=True)
class RunSettings:
    """Run-wide settings handed to the engine. Never mutated during a run."""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    config_file: str = DEFAULT_CONFIG_FILE
    log_file: Optional[str] = DEFAULT_LOG_FILE
    log_level: str = DEFAULT_LOG_LEVEL
    mode_filter: Optional[Mode] = None
    ledger_file: Optional[str] = None
    survey_min_size: int = SURVEY_MIN_DIR_SIZE
    survey_unused_days: int = SURVEY_UNUSED_DAYS
    survey_limit: int = SURVEY_LIMIT


@dataclass
class DircleanConfig:
    source: Path
    defaults: dict = field(default_factory=dict)
    rules: list[Rule] = field(default_factory=list)
    rejected: list[tuple[int, str]] = field(default_factory=list)

    @property
    def log_file(self) -> str:
        return str(self.defaults.get("log_file") or DEFAULT_LOG_FILE)

    @property
    def log_level(self) -> str:
        return str(self.defaults.get("log_level") or DEFAULT_LOG_LEVEL)

    def all_paths(self) -> list[str]:
        """Configured path specs across all rules, first occurrence order"""
        seen: dict[str, None] = {}
        for rule in self.rules:
            for path in rule.paths:
                seen.setdefault(path, None)
        return list(seen)


def _parse_age(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{label}: delete_older_than_days must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"{label}: delete_older_than_days must not be negative, got {value}")
    return value


def _parse_paths(value: Any, label: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not value:
        raise ConfigError(f"{label}: paths must be a non-empty list of strings")
    paths = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"{label}: path entries must be strings, got {item!r}")
        paths.append(os.path.expanduser(item) if item else item)
    return tuple(paths)


def _optional_size(value: Any, label: str, key: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return parse_size(value)
    except ConfigError as e:
        raise ConfigError(f"{label}: {key}: {e}") from e


def build_rule(
    entry: dict,
    defaults: Optional[dict] = None,
    overrides: Optional[SizeOverrides] = None,
    index: int = 0,
) -> Rule:
    """Layer defaults, the rule entry and CLI overrides into a validated Rule"""
    label = f"rule #{index + 1}"
    if not isinstance(entry, dict):
        raise ConfigError(f"{label}: expected a table, got {type(entry).__name__}")

    merged = dict(defaults or {})
    merged.update(entry)

    if "delete_older_than_days" not in merged:
        raise ConfigError(f"{label}: delete_older_than_days is required")
    if "paths" not in merged:
        raise ConfigError(f"{label}: paths is required")

    age_days = _parse_age(merged["delete_older_than_days"], label)
    paths = _parse_paths(merged["paths"], label)
    min_size = _optional_size(merged.get("min_file_size"), label, "min_file_size")
    max_size = _optional_size(merged.get("max_file_size"), label, "max_file_size")

    if overrides is not None:
        if overrides.min_size is not None:
            min_size = overrides.min_size
        if overrides.max_size is not None:
            max_size = overrides.max_size

    broken = merged.get("clean_broken_symlinks", False)
    if not isinstance(broken, bool):
        raise ConfigError(f"{label}: clean_broken_symlinks must be true or false")

    mode_text = str(merged.get("mode") or DEFAULT_MODE)
    return Rule(
        age_days=age_days,
        paths=paths,
        mode=Mode.parse(mode_text),
        min_size=min_size,
        max_size=max_size,
        clean_broken_symlinks=broken,
        mode_text=mode_text,
        index=index,
    )


def _read_toml(path: Path) -> dict:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Invalid TOML in config file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e


def load_config(
    path: Path,
    overrides: Optional[SizeOverrides] = None,
    example_path: Optional[Path] = None,
) -> DircleanConfig:
    """Load and validate a config file.

    Falls back to the bundled example config when *path* does not exist.
    Invalid rules are collected in ``rejected`` instead of raising.
    """
    source = Path(path)
    if example_path is None:
        example_path = EXAMPLE_CONFIG_FILE
    if not source.is_file():
        if not example_path.is_file():
            raise ConfigError(f"Config file not found: {source} (and no example config at {example_path})")
        source = example_path

    data = _read_toml(source)

    defaults = data.get("defaults", {})
    if not isinstance(defaults, dict):
        raise ConfigError(f"[defaults] in {source} must be a table")
    defaults = {"mode": DEFAULT_MODE, "log_level": DEFAULT_LOG_LEVEL, "log_file": DEFAULT_LOG_FILE, **defaults}

    entries = data.get("rules", [])
    if not isinstance(entries, list):
        raise ConfigError(f"rules in {source} must be an array of tables ([[rules]])")

    rule_defaults = {k: v for k, v in defaults.items() if k not in ("log_level", "log_file")}
    config = DircleanConfig(source=source, defaults=defaults)
    for index, entry in enumerate(entries):
        try:
            config.rules.append(build_rule(entry, rule_defaults, overrides, index))
        except ConfigError as e:
            config.rejected.append((index, str(e)))

    return config
