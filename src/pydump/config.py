"""Configuration loading for pydump.

Values come from built-in defaults, then an optional JSON file, then
``PYDUMP_*`` environment variables. Command line flags override all three.
"""

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from pydump.errors import ConfigError
from pydump.models import OutputFormat

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("plain", "json")

ENV_VARS = {
    "PYDUMP_STORE": "store_path",
    "PYDUMP_OUTPUT_FORMAT": "output_format",
    "PYDUMP_LOG_LEVEL": "log_level",
    "PYDUMP_LOG_FORMAT": "log_format",
    "PYDUMP_RECORD_INTERVAL": "record_interval",
}


def default_store_path(environ: Mapping[str, str] = os.environ) -> Path:
    """``$XDG_DATA_HOME/pydump/store.jsonl``, falling back to ``~/.local/share``."""
    base = environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(base) / "pydump" / "store.jsonl"


@dataclass(slots=True, frozen=True)
class PydumpConfig:
    """Settings shared by the dump and record commands."""

    store_path: Path
    output_format: OutputFormat = OutputFormat.RAW
    log_level: str = "WARNING"
    log_format: str = "plain"
    record_interval: float = 5.0


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw file or environment value to the type of ``name``."""
    try:
        if name == "store_path":
            return Path(str(value)).expanduser()
        if name == "output_format":
            return OutputFormat(str(value).lower())
        if name == "log_level":
            level = str(value).upper()
            if level not in LOG_LEVELS:
                raise ValueError(f"expected one of {', '.join(LOG_LEVELS)}")
            return level
        if name == "log_format":
            log_format = str(value).lower()
            if log_format not in LOG_FORMATS:
                raise ValueError(f"expected one of {', '.join(LOG_FORMATS)}")
            return log_format
        if name == "record_interval":
            interval = float(value)
            if interval <= 0:
                raise ValueError("must be positive")
            return interval
    except ValueError as e:
        raise ConfigError(f"invalid {name} '{value}': {e}") from e
    raise ConfigError(f"unknown setting '{name}'")


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] = os.environ,
) -> PydumpConfig:
    """
    Build the effective configuration.

    Args:
        path: Optional JSON file with any of the PydumpConfig field names as keys.
        environ: Environment to read ``PYDUMP_*`` overrides from.

    Raises:
        ConfigError: The file is unreadable or a value is invalid.
    """
    config = PydumpConfig(store_path=default_store_path(environ))
    known = {f.name for f in fields(PydumpConfig)}

    if path is not None:
        config_path = Path(path)
        try:
            raw = json.loads(config_path.read_text())
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot read config '{config_path}': {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"config '{config_path}' must contain a JSON object")
        unknown = set(raw) - known
        if unknown:
            raise ConfigError(f"unknown settings in '{config_path}': {', '.join(sorted(unknown))}")
        config = replace(config, **{k: _coerce(k, v) for k, v in raw.items()})
        logger.debug("Loaded config file %s", config_path)

    overrides = {
        name: _coerce(name, environ[var]) for var, name in ENV_VARS.items() if environ.get(var)
    }
    if overrides:
        config = replace(config, **overrides)
    return config
