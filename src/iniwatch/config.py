"""Configuration loading and validation for iniwatch."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from iniwatch.monitor import DEFAULT_TICK_SECONDS
from iniwatch.session import DEFAULT_RECONNECT_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".iniwatch"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.json"


@dataclass(frozen=True)
class Config:
    """Watch configuration (immutable).

    Use ``with_overrides()`` to derive a new Config with changed fields.
    """

    tick_interval: float = DEFAULT_TICK_SECONDS
    reconnect_interval: float = DEFAULT_RECONNECT_SECONDS
    section: str = ""

    def __post_init__(self) -> None:
        for name in ("tick_interval", "reconnect_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
                raise ValueError(f"{name} must be a positive number, got {value!r}")
        if not isinstance(self.section, str):
            raise ValueError(f"section must be a string, got {self.section!r}")

    def with_overrides(self, **kwargs: Any) -> Config:
        """Return a new Config with the specified fields replaced.

        ``None`` values are ignored so CLI options can be passed straight through.

        Args:
            **kwargs: Field names and new values.

        Returns:
            A new Config instance with the overridden fields.
        """
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def load_config(path: Path | None = None) -> Config:
    """Load configuration from a JSON file, falling back to defaults.

    Args:
        path: Path to config file. Defaults to ~/.iniwatch/config.json.

    Returns:
        Loaded Config instance.

    Raises:
        ValueError: If the file is not a JSON object or holds invalid values.
    """
    config_path = path or DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info("No config file found at %s, using defaults", config_path)
        return Config()

    logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys in %s: %s", config_path, ", ".join(unknown))

    return Config(**{k: v for k, v in data.items() if k in known})
