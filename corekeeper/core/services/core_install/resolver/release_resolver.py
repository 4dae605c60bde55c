"""
L2 Resolver — channel → concrete release.

    stable  →  GET /repos/{repo}/releases/latest
    dev     →  GET /repos/{repo}/releases?per_page=N
               first entry flagged ``prerelease``, else the newest entry

The release tag is NOT trusted as the version.  Every release ships a
``version.txt`` asset; its trimmed text is the authoritative version
string.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from pydantic import ValidationError

from corekeeper.core.models.release import ReleaseChannel, ReleaseDescriptor
from corekeeper.core.services.core_install.errors import (
    InvalidChannel,
    NotFoundError,
    ParseError,
)

logger = logging.getLogger(__name__)

VERSION_ASSET = "version.txt"


class RegistryTransport(Protocol):
    """What the resolver needs from ``RegistryClient``."""

    def get_json(self, url: str, what: str) -> Any: ...

    def get_text(self, url: str, what: str) -> str: ...


def parse_channel(value: str | ReleaseChannel) -> ReleaseChannel:
    """Turn user input into a ``ReleaseChannel``.

    Raises:
        InvalidChannel: For anything other than ``stable`` / ``dev``.
    """
    if isinstance(value, ReleaseChannel):
        return value
    try:
        return ReleaseChannel(str(value).strip().lower())
    except ValueError:
        raise InvalidChannel(
            f"Invalid channel {value!r} (expected 'stable' or 'dev')"
        ) from None


class ReleaseResolver:
    """Resolve a release channel against the GitHub Releases API."""

    def __init__(
        self,
        client: RegistryTransport,
        *,
        repository: str,
        api_base: str = "https://api.github.com",
        dev_page_size: int = 10,
    ) -> None:
        self._client = client
        self._repository = repository
        self._api_base = api_base.rstrip("/")
        self._dev_page_size = dev_page_size

    @property
    def repository(self) -> str:
        return self._repository

    # ── URLs ────────────────────────────────────────────────────

    def latest_url(self) -> str:
        return f"{self._api_base}/repos/{self._repository}/releases/latest"

    def list_url(self) -> str:
        return (
            f"{self._api_base}/repos/{self._repository}/releases"
            f"?per_page={self._dev_page_size}"
        )

    # ── Resolution ──────────────────────────────────────────────

    def resolve(self, channel: ReleaseChannel) -> ReleaseDescriptor:
        """Return the release the channel currently points at."""
        if channel is ReleaseChannel.STABLE:
            payload = self._client.get_json(self.latest_url(), "latest release")
            release = _parse_release(payload, "latest release")
        else:
            release = self._resolve_dev()

        logger.info(
            "Resolved %s channel of %s: published=%s prerelease=%s assets=%d",
            channel, self._repository, release.published_at,
            release.prerelease, len(release.assets),
        )
        return release

    def resolve_version(self, release: ReleaseDescriptor) -> str:
        """Read the authoritative version string from ``version.txt``."""
        asset = release.find_asset(VERSION_ASSET)
        if asset is None:
            raise NotFoundError(f"Release has no {VERSION_ASSET} asset")

        version = self._client.get_text(asset.download_url, VERSION_ASSET).strip()
        if not version:
            raise ParseError(f"{VERSION_ASSET} is empty")
        logger.debug("%s reports version %s", VERSION_ASSET, version)
        return version

    def _resolve_dev(self) -> ReleaseDescriptor:
        payload = self._client.get_json(self.list_url(), "releases list")
        if not isinstance(payload, list):
            raise ParseError(
                f"Failed to parse releases list JSON: expected a list, got {type(payload).__name__}"
            )
        releases = [_parse_release(entry, "releases list") for entry in payload]
        if not releases:
            raise NotFoundError(f"No releases found for {self._repository}")

        for release in releases:
            if release.prerelease:
                return release

        logger.info("No prerelease in the newest %d releases, using the newest one", len(releases))
        return releases[0]


def _parse_release(payload: Any, what: str) -> ReleaseDescriptor:
    if not isinstance(payload, dict):
        raise ParseError(
            f"Failed to parse {what} JSON: expected an object, got {type(payload).__name__}"
        )
    try:
        return ReleaseDescriptor.model_validate(payload)
    except ValidationError as e:
        raise ParseError(f"Failed to parse {what} JSON: {e}") from e
