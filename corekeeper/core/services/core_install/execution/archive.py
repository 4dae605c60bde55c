"""
L4 Execution — unpack a downloaded artifact into a version directory.

Dispatch by asset name suffix:

    .zip              every non-directory entry, relative layout kept
    .tar.gz / .tgz    full unpack (tarfile ``data`` filter)
    .gz               single compressed stream → <binary_name>
    anything else     raw executable → <binary_name>

Everything is first written to a private staging directory inside the
destination and then moved into place with ``os.replace``.  Re-installing
the version that is currently running therefore swaps directory entries
instead of rewriting the running file.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Callable

from corekeeper.core.services.core_install.domain.platform_support import set_executable
from corekeeper.core.services.core_install.errors import (
    BinaryNotFound,
    InstallError,
    ParseError,
)

logger = logging.getLogger(__name__)

_STAGING_PREFIX = ".staging-"


def archive_kind(asset_name: str) -> str:
    """One of ``zip``, ``tar.gz``, ``gz``, ``raw``."""
    lowered = asset_name.lower()
    if lowered.endswith(".zip"):
        return "zip"
    if lowered.endswith((".tar.gz", ".tgz")):
        return "tar.gz"
    if lowered.endswith(".gz"):
        return "gz"
    return "raw"


def install_archive(
    data: bytes,
    asset_name: str,
    dest_dir: Path,
    binary_name: str,
    *,
    make_executable: Callable[[Path], None] = set_executable,
) -> Path:
    """Materialize the executable from ``data`` inside ``dest_dir``.

    Returns:
        Path of the installed executable.

    Raises:
        ParseError: Corrupt archive or unsafe entry paths.
        BinaryNotFound: No file called ``binary_name`` after extraction.
        InstallError: Filesystem failure.
    """
    kind = archive_kind(asset_name)
    logger.info("Installing %s (%s, %d bytes) into %s", asset_name, kind, len(data), dest_dir)

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=_STAGING_PREFIX, dir=dest_dir))
    except OSError as e:
        raise InstallError(f"Cannot prepare {dest_dir}: {e}") from e

    try:
        if kind == "zip":
            _extract_zip(data, staging)
            found = _locate_staged(staging, binary_name)
        elif kind == "tar.gz":
            _extract_tar(data, staging)
            found = _locate_staged(staging, binary_name)
        elif kind == "gz":
            _write_file(staging / binary_name, _gunzip(data))
            found = PurePosixPath(binary_name)
        else:
            _write_file(staging / binary_name, data)
            found = PurePosixPath(binary_name)

        moved = _promote(staging, dest_dir)
    except OSError as e:
        raise InstallError(f"Failed to write {asset_name} into {dest_dir}: {e}") from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    logger.debug("Placed %d file(s) in %s", moved, dest_dir)

    # Only files from this artifact count; leftovers in dest_dir are ignored
    installed = dest_dir.joinpath(*found.parts) if found is not None else None
    if installed is None or not installed.is_file():
        raise BinaryNotFound(f"{binary_name} not found in {asset_name}")

    make_executable(installed)
    logger.info("Installed executable %s", installed)
    return installed


def find_binary(root: Path, binary_name: str) -> Path | None:
    """Depth-first search for a file named exactly ``binary_name``."""
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError:
        return None

    for entry in entries:
        if entry.name == binary_name and entry.is_file():
            return Path(entry.path)
    for entry in entries:
        if entry.name.startswith(_STAGING_PREFIX):
            continue
        if entry.is_dir(follow_symlinks=False):
            found = find_binary(Path(entry.path), binary_name)
            if found is not None:
                return found
    return None


def _locate_staged(staging: Path, binary_name: str) -> PurePosixPath | None:
    """Binary position inside the staging tree, top level first."""
    path = staging / binary_name
    if not path.is_file():
        path = find_binary(staging, binary_name)
    if path is None:
        return None
    return PurePosixPath(path.relative_to(staging).as_posix())


# ── Format handlers ────────────────────────────────────────


def _extract_zip(data: bytes, staging: Path) -> None:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            for member in archive.infolist():
                if member.is_dir():
                    continue
                relative = _safe_relative(member.filename)
                target = staging.joinpath(*relative.parts)
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as source, target.open("wb") as out:
                    shutil.copyfileobj(source, out)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise ParseError(f"Corrupt zip archive: {e}") from e


def _extract_tar(data: bytes, staging: Path) -> None:
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            tar.extractall(staging, filter="data")
    except gzip.BadGzipFile as e:
        raise ParseError(f"Corrupt tar.gz archive: {e}") from e
    except (tarfile.TarError, zlib.error, EOFError) as e:
        raise ParseError(f"Corrupt or unsafe tar.gz archive: {e}") from e


def _gunzip(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (gzip.BadGzipFile, zlib.error, EOFError) as e:
        raise ParseError(f"Corrupt gzip stream: {e}") from e


def _safe_relative(name: str) -> PurePosixPath:
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or (path.parts and ":" in path.parts[0]):
        raise ParseError(f"Archive contains an absolute path: {name}")
    if ".." in path.parts:
        raise ParseError(f"Archive entry escapes the destination: {name}")
    parts = [p for p in path.parts if p not in ("", ".")]
    if not parts:
        raise ParseError(f"Archive contains an empty entry name: {name!r}")
    return PurePosixPath(*parts)


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _promote(staging: Path, dest_dir: Path) -> int:
    """Move staged files into ``dest_dir``, replacing entries not inodes."""
    moved = 0
    for dirpath, _dirnames, filenames in os.walk(staging):
        relative_dir = Path(dirpath).relative_to(staging)
        for filename in filenames:
            target = dest_dir / relative_dir / filename
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(Path(dirpath) / filename, target)
            moved += 1
    return moved
