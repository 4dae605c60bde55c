"""
Configuration loader — reads corekeeper.yml into the Settings model.

It reads YAML, validates against the Pydantic schema, applies the
environment overrides and returns a typed ``Settings`` object.  The
file is optional: without one, defaults are used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from corekeeper.core.models.settings import Settings

logger = logging.getLogger(__name__)

# Default config filename
SETTINGS_FILE = "corekeeper.yml"

# Environment overrides (applied after the file)
ENV_CORES_DIR = "COREKEEPER_CORES_DIR"
ENV_REPOSITORY = "COREKEEPER_REPOSITORY"


class ConfigError(Exception):
    """Raised when corekeeper configuration is invalid."""


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for corekeeper.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to corekeeper.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None, *, search: bool = True) -> Settings:
    """Load and validate corekeeper settings.

    Args:
        path: Explicit path to corekeeper.yml. Must exist when given.
        search: When ``path`` is None, look for the file upward from cwd.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    data: dict = {}

    if path is None and search:
        path = find_settings_file()

    if path is not None:
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

        logger.debug("Loading settings from %s", path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e

        try:
            loaded = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Expected a YAML mapping in {path}, got {type(loaded).__name__}")

        # The YAML may wrap everything under a "corekeeper" key or be flat
        section = loaded.get("corekeeper", loaded)
        if not isinstance(section, dict):
            raise ConfigError(f"Expected a mapping under 'corekeeper' in {path}")
        data = dict(section)

    _apply_env_overrides(data)

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid corekeeper configuration: {e}") from e

    logger.info(
        "Settings: repository=%s cores_dir=%s", settings.repository, settings.cores_dir,
    )
    return settings


def _apply_env_overrides(data: dict) -> None:
    cores_dir = os.environ.get(ENV_CORES_DIR)
    if cores_dir:
        data["cores_dir"] = cores_dir
    repository = os.environ.get(ENV_REPOSITORY)
    if repository:
        data["repository"] = repository
