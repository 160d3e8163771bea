# src/promptpack/config.py
import logging
import tomllib
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from promptpack.errors import ConfigError

logger = logging.getLogger(__name__)

PROMPTIGNORE_NAME = ".promptignore"
GITIGNORE_NAME = ".gitignore"
CONFIG_RELATIVE_PATH = Path(".prompt") / "config.toml"
PROMPT_HOME_OVERRIDE_ENV = "PROMPT_HOME_DIR"

DEFAULT_MODEL = "o200k_base"

# Pruned no matter what the ignore files or --hidden say
ALWAYS_EXCLUDED = [
    ".git/",
]


class OutputFormat(Enum):
    PLAIN = "plain"
    JSON = "json"
    YAML = "yaml"


@dataclass(frozen=True)
class Settings:
    """Resolved run parameters, built once and passed read-only through the pipeline."""
    root: Path
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    use_gitignore: bool = True
    use_promptignore: bool = True
    include_hidden: bool = False
    output_format: OutputFormat = OutputFormat.PLAIN
    tree: bool = False
    token_budget: Optional[int] = None
    model: str = DEFAULT_MODEL
    line_numbers: bool = False
    top: Optional[int] = None
    stdout: bool = False
    workers: Optional[int] = None


# config.toml key -> (Settings field, expected type)
CONFIG_KEYS: Dict[str, Tuple[str, type]] = {
    "include": ("include", list),
    "exclude": ("exclude", list),
    "gitignore": ("use_gitignore", bool),
    "promptignore": ("use_promptignore", bool),
    "hidden": ("include_hidden", bool),
    "format": ("output_format", str),
    "model": ("model", str),
    "token_budget": ("token_budget", int),
    "line_numbers": ("line_numbers", bool),
}


def find_config_path(start: Path) -> Optional[Path]:
    """Walks up from `start` looking for .prompt/config.toml."""
    start = start.resolve()
    for directory in [start, *start.parents]:
        candidate = directory / CONFIG_RELATIVE_PATH
        if candidate.is_file():
            return candidate
    return None


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """
    Reads a config.toml and maps its keys onto Settings field names.
    Raises ConfigError on unreadable files, unknown keys or wrong value types.
    """
    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e

    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in CONFIG_KEYS:
            raise ConfigError(f"{config_path}: unknown key '{key}'")
        field_name, expected = CONFIG_KEYS[key]
        # bool is a subclass of int; don't accept `token_budget = true`
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ConfigError(f"{config_path}: '{key}' must be of type {expected.__name__}")
        if expected is list:
            if not all(isinstance(v, str) for v in value):
                raise ConfigError(f"{config_path}: '{key}' must be a list of strings")
            value = tuple(value)
        if field_name == "output_format":
            value = parse_output_format(value)
        values[field_name] = value

    logger.debug("Loaded %d setting(s) from %s", len(values), config_path)
    return values


def parse_output_format(value: str) -> OutputFormat:
    try:
        return OutputFormat(value.lower())
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise ConfigError(f"Unknown output format '{value}' (expected one of: {choices})") from None


def build_settings(root: Path, overrides: Dict[str, Any]) -> Settings:
    """
    Merges the project config file (if any) with explicit overrides.
    Overrides whose value is None are treated as "not given".
    """
    values: Dict[str, Any] = {}
    config_path = find_config_path(root)
    if config_path is not None:
        values.update(load_config_file(config_path))

    known = {f.name for f in fields(Settings)}
    for key, value in overrides.items():
        if key not in known:
            raise ConfigError(f"Unknown setting '{key}'")
        if value is not None:
            values[key] = value

    values["root"] = root
    return Settings(**values)
