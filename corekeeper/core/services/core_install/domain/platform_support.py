"""
L1 Domain — how the ``current`` pointer is implemented on this host.

One capability, three variants, chosen ONCE by
``detect_platform_support()``:

    PosixSymlinkSupport   relative symlink, swapped with an atomic rename
    PosixCopySupport      POSIX filesystem without usable symlinks:
                          ``current`` is a real directory holding a copy
    WindowsSupport        directory symlink; falls back to the copy
                          strategy when the link privilege is missing

In every variant the pointer is replaced as a whole, never the binary
inside it, so a process already executing the old binary keeps its
inode.
"""

from __future__ import annotations

import abc
import logging
import os
import shutil
import stat
import uuid
from pathlib import Path

from corekeeper.core.services.core_install.detection.platform import binary_name, platform_id
from corekeeper.core.services.core_install.errors import InstallError

logger = logging.getLogger(__name__)

CURRENT_NAME = "current"
# Written into every version directory; survives the copy fallback
VERSION_MARKER = ".version"

_EXEC_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def set_executable(path: Path) -> None:
    """Add owner/group/other execute bits (no-op on Windows)."""
    if os.name == "nt":
        return
    try:
        mode = path.stat().st_mode
        os.chmod(path, mode | _EXEC_BITS)
    except OSError as e:
        raise InstallError(f"Failed to mark {path} executable: {e}") from e


def remove_entry(path: Path) -> None:
    """Remove ``path`` with the operation matching what it actually is."""
    if path.is_symlink():
        try:
            path.unlink()
        except (IsADirectoryError, PermissionError):
            # Windows directory links are removed like directories
            os.rmdir(path)
    elif path.is_dir():
        shutil.rmtree(path)
    elif path.exists():
        path.unlink()


def _scratch_name(cores_dir: Path) -> Path:
    return cores_dir / f".{CURRENT_NAME}-{uuid.uuid4().hex[:8]}"


class PlatformSupport(abc.ABC):
    """Platform capability for executables and the ``current`` pointer."""

    name = "abstract"

    def __init__(self, platform_key: str) -> None:
        self.platform_id = platform_key
        self.binary_name = binary_name(platform_key)

    def make_executable(self, path: Path) -> None:
        set_executable(path)

    def point_current(self, cores_dir: Path, version: str) -> Path:
        """Repoint ``cores_dir/current`` at ``cores_dir/<version>``.

        Returns:
            The ``current`` path.

        Raises:
            InstallError: On any filesystem failure; the old pointer is
                left as it was whenever possible.
        """
        target = cores_dir / version
        if not (target / self.binary_name).is_file():
            raise InstallError(f"Version {version} is not staged at {target}")
        current = cores_dir / CURRENT_NAME
        try:
            self._swap(cores_dir, current, version)
        except OSError as e:
            raise InstallError(f"Failed to switch {current} to {version}: {e}") from e
        logger.info("current → %s (%s)", version, self.name)
        return current

    @abc.abstractmethod
    def _swap(self, cores_dir: Path, current: Path, version: str) -> None: ...

    # ── Shared strategies ───────────────────────────────────────

    def _swap_by_copy(self, cores_dir: Path, current: Path, version: str) -> None:
        source = cores_dir / version
        staging = _scratch_name(cores_dir)
        staging.mkdir()
        try:
            shutil.copy2(source / self.binary_name, staging / self.binary_name)
            self.make_executable(staging / self.binary_name)
            marker = source / VERSION_MARKER
            if marker.is_file():
                shutil.copy2(marker, staging / VERSION_MARKER)
            remove_entry(current)
            os.replace(staging, current)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

    def to_dict(self) -> dict:
        return {"name": self.name, "platform": self.platform_id, "binary_name": self.binary_name}


class PosixSymlinkSupport(PlatformSupport):
    name = "posix-symlink"

    def _swap(self, cores_dir: Path, current: Path, version: str) -> None:
        link = _scratch_name(cores_dir)
        # Relative target keeps the tree relocatable
        os.symlink(version, link)
        try:
            if current.is_dir() and not current.is_symlink():
                # Leftover copy from an earlier fallback install
                shutil.rmtree(current)
            os.replace(link, current)
        except BaseException:
            link.unlink(missing_ok=True)
            raise


class PosixCopySupport(PlatformSupport):
    name = "posix-copy"

    def _swap(self, cores_dir: Path, current: Path, version: str) -> None:
        self._swap_by_copy(cores_dir, current, version)


class WindowsSupport(PlatformSupport):
    name = "windows"

    def _swap(self, cores_dir: Path, current: Path, version: str) -> None:
        link = _scratch_name(cores_dir)
        try:
            os.symlink(cores_dir / version, link, target_is_directory=True)
        except OSError as e:
            # ERROR_PRIVILEGE_NOT_HELD without Developer Mode / admin
            logger.warning("Directory link unavailable (%s); copying the binary instead", e)
            self._swap_by_copy(cores_dir, current, version)
            return
        try:
            remove_entry(current)
            os.rename(link, current)
        except BaseException:
            remove_entry(link)
            raise


def symlinks_supported(directory: Path) -> bool:
    """Probe whether ``directory`` accepts symbolic links."""
    probe = _scratch_name(directory)
    try:
        os.symlink(".", probe)
    except (OSError, NotImplementedError):
        return False
    probe.unlink(missing_ok=True)
    return True


def detect_platform_support(cores_dir: Path, platform_key: str | None = None) -> PlatformSupport:
    """Pick the variant for this host (called once at startup)."""
    key = platform_key or platform_id()
    if key == "windows":
        support: PlatformSupport = WindowsSupport(key)
    else:
        cores_dir.mkdir(parents=True, exist_ok=True)
        if symlinks_supported(cores_dir):
            support = PosixSymlinkSupport(key)
        else:
            support = PosixCopySupport(key)
    logger.debug("Platform support: %s", support.name)
    return support


def read_current_version(cores_dir: Path) -> str | None:
    """Version the ``current`` pointer selects, or None if there is none."""
    current = cores_dir / CURRENT_NAME
    marker = current / VERSION_MARKER
    try:
        if marker.is_file():
            text = marker.read_text(encoding="utf-8").strip()
            if text:
                return text
        if current.is_symlink():
            return Path(os.readlink(current)).name
    except OSError as e:
        logger.debug("Cannot read current version from %s: %s", current, e)
    return None
