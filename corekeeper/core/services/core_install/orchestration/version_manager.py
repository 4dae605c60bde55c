"""
L5 Orchestration — the version manager.

Owns ``cores_dir`` and the ``current`` pointer:

    cores_dir/
        <version>/<binary>     one directory per installed version
        current → <version>    the selected version

Pipeline of ``download_install_latest``:

    resolve → select → download (progress) → verify → install → repoint

A failure at any step aborts the pipeline.  Staged version directories
are left where they are; ``current`` is only touched once the new
version is fully on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path

from corekeeper.core.models.release import (
    Asset,
    DownloadPlan,
    ReleaseChannel,
    ReleaseDescriptor,
    VersionInfo,
)
from corekeeper.core.services.core_install.detection.platform import HostProfile
from corekeeper.core.services.core_install.domain.platform_support import (
    CURRENT_NAME,
    VERSION_MARKER,
    PlatformSupport,
    read_current_version,
)
from corekeeper.core.services.core_install.errors import (
    InstallError,
    NotFoundError,
    ParseError,
)
from corekeeper.core.services.core_install.execution.archive import install_archive
from corekeeper.core.services.core_install.execution.checksum import verify_sha256
from corekeeper.core.services.core_install.execution.download import (
    ProgressCallback,
    download_bytes,
)
from corekeeper.core.services.core_install.resolver.artifact_selector import (
    is_checksum_asset,
    select_asset,
)
from corekeeper.core.services.core_install.resolver.registry_client import RegistryClient
from corekeeper.core.services.core_install.resolver.release_resolver import ReleaseResolver

logger = logging.getLogger(__name__)


def validate_version(version: str) -> str:
    """Reject version strings that cannot be used as a directory name."""
    cleaned = version.strip()
    if not cleaned or cleaned in (".", "..") or ".." in cleaned:
        raise ParseError(f"Unusable version string: {version!r}")
    if "/" in cleaned or "\\" in cleaned or ":" in cleaned:
        raise ParseError(f"Version string contains a path separator: {version!r}")
    if cleaned == CURRENT_NAME or cleaned.startswith("."):
        raise ParseError(f"Version string collides with an internal name: {version!r}")
    return cleaned


class VersionManager:
    """Installs core versions and keeps ``current`` pointing at one.

    Not thread-safe on its own: share it through ``Shared``.
    """

    def __init__(
        self,
        cores_dir: Path,
        *,
        resolver: ReleaseResolver,
        client: RegistryClient,
        host: HostProfile,
        support: PlatformSupport,
    ) -> None:
        self.cores_dir = cores_dir
        self.current_version: str | None = None
        self.current_core_path: Path | None = None
        self._resolver = resolver
        self._client = client
        self._host = host
        self._support = support

    @property
    def binary_name(self) -> str:
        return self._support.binary_name

    # ── Queries ─────────────────────────────────────────────────

    def install_dir(self) -> Path:
        """Root directory holding every installed version."""
        return self.cores_dir

    def default_core_path(self) -> Path | None:
        """``current/<binary>`` when it exists on disk."""
        path = self.cores_dir / CURRENT_NAME / self.binary_name
        return path if path.is_file() else None

    def detect_current(self) -> str | None:
        """Restore state from an existing ``current`` pointer (startup)."""
        path = self.default_core_path()
        if path is None:
            return None
        self.current_version = read_current_version(self.cores_dir)
        self.current_core_path = path
        logger.info("Found installed core %s at %s", self.current_version or "?", path)
        return self.current_version

    def installed_versions(self) -> list[str]:
        """Version directories holding a binary, sorted by name."""
        if not self.cores_dir.is_dir():
            return []
        versions = []
        for entry in self.cores_dir.iterdir():
            if entry.name == CURRENT_NAME or entry.name.startswith("."):
                continue
            if entry.is_dir() and not entry.is_symlink() and (entry / self.binary_name).is_file():
                versions.append(entry.name)
        return sorted(versions)

    # ── Resolution (no artifact bytes) ──────────────────────────

    def fetch_latest(self, channel: ReleaseChannel) -> VersionInfo:
        """Describe the newest release on ``channel`` without downloading it."""
        release = self._resolver.resolve(channel)
        version = self._resolver.resolve_version(release)
        asset = self._select(release)
        checksum = _checksum_asset_url(release)
        return VersionInfo(
            version=version,
            channel=channel,
            release_date=release.published_at,
            download_url=asset.download_url if asset is not None else None,
            checksum=checksum,
        )

    def plan_download(self, channel: ReleaseChannel) -> DownloadPlan:
        """Resolve the exact artifact (and checksum listing) to fetch.

        Raises:
            NotFoundError: When no asset fits this machine.
        """
        release = self._resolver.resolve(channel)
        version = self._resolver.resolve_version(release)
        asset = self._select(release)
        if asset is None:
            raise NotFoundError(
                f"No {self._host.platform_id}/{self._host.arch} asset in release {version}"
            )
        plan = DownloadPlan(
            version=version,
            asset_name=asset.name,
            asset_url=asset.download_url,
            checksum_url=_checksum_asset_url(release),
        )
        logger.info(
            "Download plan: version=%s asset=%s checksum=%s",
            plan.version, plan.asset_name, plan.checksum_url or "-",
        )
        return plan

    def _select(self, release: ReleaseDescriptor) -> Asset | None:
        return select_asset(
            release.assets,
            self._host.platform_id,
            self._host.arch_keywords,
            self._host.variant_preference,
        )

    # ── Install ─────────────────────────────────────────────────

    def install_from_bytes(self, version: str, asset_name: str, data: bytes) -> Path:
        """Install already-downloaded artifact bytes as ``version``.

        Returns:
            ``cores_dir/current/<binary>``.
        """
        version = validate_version(version)
        version_dir = self.cores_dir / version

        binary = install_archive(
            data, asset_name, version_dir, self.binary_name,
            make_executable=self._support.make_executable,
        )
        top_level = version_dir / self.binary_name
        if binary != top_level:
            # ``current`` resolves <version>/<binary>; lift nested binaries up
            try:
                binary.replace(top_level)
            except OSError as e:
                raise InstallError(f"Cannot move {binary} to {top_level}: {e}") from e

        try:
            (version_dir / VERSION_MARKER).write_text(version + "\n", encoding="utf-8")
        except OSError as e:
            raise InstallError(f"Cannot write version marker in {version_dir}: {e}") from e

        current = self._support.point_current(self.cores_dir, version)
        self.current_version = version
        self.current_core_path = current / self.binary_name
        logger.info("Installed core %s → %s", version, self.current_core_path)
        return self.current_core_path

    def download_install_latest(
        self,
        channel: ReleaseChannel,
        on_progress: ProgressCallback | None = None,
    ) -> Path:
        """Plan, download, verify and install the newest release."""

        def report(stage: str, percent: int, message: str) -> None:
            if on_progress is not None:
                on_progress(stage, percent, message)

        plan = self.plan_download(channel)
        report("start", 0, f"Downloading {plan.asset_name}")

        data = download_bytes(self._client, plan.asset_url, plan.asset_name, on_progress)

        if plan.checksum_url:
            report("verify", 92, "Verifying checksum")
            listing = self._client.get_text(plan.checksum_url, "checksum listing")
            verify_sha256(data, listing)
        else:
            logger.warning("Release %s publishes no checksum listing; skipping verification", plan.version)

        report("install", 95, f"Installing {plan.version}")
        path = self.install_from_bytes(plan.version, plan.asset_name, data)
        report("done", 100, f"Installed {plan.version}")
        return path

    def to_dict(self) -> dict:
        return {
            "cores_dir": str(self.cores_dir),
            "current_version": self.current_version,
            "current_core_path": str(self.current_core_path) if self.current_core_path else None,
            "platform_support": self._support.name,
            "host": self._host.to_dict(),
        }


def _checksum_asset_url(release: ReleaseDescriptor) -> str | None:
    for asset in release.assets:
        if is_checksum_asset(asset.name):
            return asset.download_url
    return None
