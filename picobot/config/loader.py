"""Configuration file I/O."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from .schema import Config, DEFAULT_HOME


CONFIG_FILE = DEFAULT_HOME / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file, falling back to defaults.

    Environment variables (PICOBOT_*) override values from the file.
    """
    path = path or CONFIG_FILE
    if not path.exists():
        return Config()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        logger.debug(f"Loaded config from {path}")
        return Config(**raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Config file is corrupted: {e}, using defaults")
    except ValidationError as e:
        logger.warning(f"Config file is invalid: {e}, using defaults")
    return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    path = path or CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Saved config to {path}")


def ensure_dirs(config: Config) -> None:
    """Ensure all required directories exist."""
    for d in [
        config.home_dir,
        config.workspace_dir,
        config.sessions_dir,
        config.memory_dir,
    ]:
        d.mkdir(parents=True, exist_ok=True)
