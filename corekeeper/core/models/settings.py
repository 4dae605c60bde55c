"""
Settings model — corekeeper's own configuration.

Loaded from ``corekeeper.yml`` by ``corekeeper.core.config.loader``.
Every field has a default, so an empty or missing file is valid.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from corekeeper.core.models.release import ReleaseChannel

DEFAULT_REPOSITORY = "MetaCubeX/mihomo"
DEFAULT_API_BASE = "https://api.github.com"

# Directory name shared with the desktop app so both see the same installs
APP_DIR_NAME = "mihomo-gui"


def default_cache_dir() -> Path:
    """Per-user cache directory for the current platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA")
        return Path(base) if base else Path.home() / "AppData" / "Local"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches"
    xdg = os.environ.get("XDG_CACHE_HOME")
    return Path(xdg) if xdg else Path.home() / ".cache"


def default_cores_dir() -> Path:
    return default_cache_dir() / APP_DIR_NAME / "cores"


class Settings(BaseModel):
    """Root configuration for corekeeper."""

    repository: str = DEFAULT_REPOSITORY
    api_base: str = DEFAULT_API_BASE
    cores_dir: Path = Field(default_factory=default_cores_dir)
    dev_page_size: int = Field(default=10, ge=1, le=100)
    request_timeout: float = Field(default=30.0, gt=0)
    token_env: str = "GITHUB_TOKEN"
    default_channel: ReleaseChannel = ReleaseChannel.STABLE
    core_config: Path | None = None

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str) -> str:
        value = value.strip().strip("/")
        if value.count("/") != 1 or not all(value.split("/")):
            raise ValueError(f"repository must look like 'owner/name', got {value!r}")
        return value

    @field_validator("api_base")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("cores_dir", "core_config")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None
