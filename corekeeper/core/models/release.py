"""
Release models — what the registry tells us about a core release.

``Asset`` and ``ReleaseDescriptor`` are validated straight from the
GitHub Releases JSON (``browser_download_url`` is exposed as
``download_url``).  All of them are frozen: they are created per request
and thrown away afterwards, nothing here is persisted.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ReleaseChannel(StrEnum):
    """Release track."""

    STABLE = "stable"
    DEV = "dev"


class Asset(BaseModel):
    """A single downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    download_url: str = Field(alias="browser_download_url")


class ReleaseDescriptor(BaseModel):
    """The parts of a release the installer relies on."""

    model_config = ConfigDict(frozen=True)

    published_at: str | None = None
    prerelease: bool = False
    assets: tuple[Asset, ...] = ()

    def find_asset(self, name: str) -> Asset | None:
        """Look up an asset by exact name, ignoring case."""
        wanted = name.lower()
        for asset in self.assets:
            if asset.name.lower() == wanted:
                return asset
        return None


class VersionInfo(BaseModel):
    """Answer of a "check for updates" query."""

    model_config = ConfigDict(frozen=True)

    version: str
    channel: ReleaseChannel
    release_date: str | None = None
    download_url: str | None = None
    checksum: str | None = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


class DownloadPlan(BaseModel):
    """Fully resolved intent to download one artifact.

    Built before any bytes move so a UI can show what is about to be
    fetched.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    asset_name: str
    asset_url: str
    checksum_url: str | None = None

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
