"""Configuration loading for the operation journal.

Looked up in the base directory, first match wins:
1. .journal.toml
2. journal_config.toml
3. journal_config.json
4. .journal.json

TOML layout::

    [journal]
    dir = "journal"        # relative to the base directory

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .errors import ConfigError

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:  # pragma: no cover
    import tomli as tomllib  # Python <3.11

ENV_JOURNAL_DIR = "OP_JOURNAL_DIR"


def default_base_dir() -> Path:
    return Path.home() / ".dotman"


@dataclass
class JournalConfig:
    """Where the journal lives and how loudly it logs."""

    base_dir: Path = field(default_factory=default_base_dir)

    # Relative to base_dir unless absolute
    journal_dir: str = "journal"

    log_level: str = "WARNING"

    def get_journal_path(self) -> Path:
        override = os.environ.get(ENV_JOURNAL_DIR)
        if override:
            return Path(override).expanduser()
        return self.base_dir / Path(self.journal_dir).expanduser()


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def dict_to_config(data: dict[str, Any], base_dir: Path) -> JournalConfig:
    """Convert dictionary to JournalConfig."""
    config = JournalConfig(base_dir=base_dir)

    if "journal" in data:
        journal = data["journal"]
        if "dir" in journal:
            config.journal_dir = str(journal["dir"])

    if "logging" in data:
        log = data["logging"]
        if "level" in log:
            level = str(log["level"]).upper()
            if not isinstance(logging.getLevelName(level), int):
                raise ConfigError(f"Unknown log level: {log['level']!r}")
            config.log_level = level

    return config


def find_config_file(base_dir: Path) -> Optional[Path]:
    """Find configuration file in the base directory."""
    candidates = [
        ".journal.toml",
        "journal_config.toml",
        "journal_config.json",
        ".journal.json",
    ]

    for name in candidates:
        path = base_dir / name
        if path.exists():
            return path

    return None


def load_config(base_dir: Optional[Path] = None, config_path: Optional[Path] = None) -> JournalConfig:
    """Load journal configuration.

    Args:
        base_dir: Directory holding the journal; defaults to ~/.dotman
        config_path: Optional explicit path to config file

    Returns:
        JournalConfig instance

    Raises:
        ValueError: If the config file type is not supported
        ConfigError: If the config file cannot be parsed
    """
    if base_dir is None:
        base_dir = default_base_dir()

    if config_path is None:
        config_path = find_config_file(base_dir)

    if config_path is None:
        # No config file - use defaults
        return JournalConfig(base_dir=base_dir)

    suffix = config_path.suffix.lower()

    try:
        if suffix == ".toml":
            config_dict = load_toml_config(config_path)
        elif suffix == ".json":
            config_dict = load_json_config(config_path)
        else:
            raise ValueError(f"Unsupported config file type: {suffix}")
    except (OSError, tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error loading config {config_path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError(f"Config {config_path} must contain a table/object")

    return dict_to_config(config_dict, base_dir)
