"""
Tests for the ``current`` pointer capability.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import posix_only
from corekeeper.core.services.core_install.domain.platform_support import (
    CURRENT_NAME,
    VERSION_MARKER,
    PosixCopySupport,
    PosixSymlinkSupport,
    WindowsSupport,
    detect_platform_support,
    read_current_version,
    remove_entry,
)
from corekeeper.core.services.core_install.errors import InstallError


def _stage(cores: Path, version: str, binary: str = "mihomo", content: bytes = b"core") -> Path:
    d = cores / version
    d.mkdir(parents=True)
    (d / binary).write_bytes(content + version.encode())
    (d / VERSION_MARKER).write_text(version + "\n")
    return d


def _scratch(cores: Path) -> list[str]:
    return [p.name for p in cores.iterdir() if p.name.startswith(".")]


@posix_only
class TestSymlinkSupport:
    def test_points_at_version(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        current = PosixSymlinkSupport("linux").point_current(cores_dir, "v1.0.0")
        assert current.is_symlink()
        assert os.readlink(current) == "v1.0.0"
        assert current.resolve() == (cores_dir / "v1.0.0").resolve()

    def test_repoint(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        _stage(cores_dir, "v1.1.0")
        support = PosixSymlinkSupport("linux")
        support.point_current(cores_dir, "v1.0.0")
        support.point_current(cores_dir, "v1.1.0")
        assert (cores_dir / CURRENT_NAME / "mihomo").read_bytes() == b"corev1.1.0"
        assert _scratch(cores_dir) == []

    def test_replaces_leftover_copy(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        PosixCopySupport("linux").point_current(cores_dir, "v1.0.0")
        assert not (cores_dir / CURRENT_NAME).is_symlink()

        PosixSymlinkSupport("linux").point_current(cores_dir, "v1.0.0")
        assert (cores_dir / CURRENT_NAME).is_symlink()

    def test_unstaged_version_leaves_pointer(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        support = PosixSymlinkSupport("linux")
        support.point_current(cores_dir, "v1.0.0")
        with pytest.raises(InstallError):
            support.point_current(cores_dir, "v9.9.9")
        assert os.readlink(cores_dir / CURRENT_NAME) == "v1.0.0"


class TestCopySupport:
    def test_copies_binary_and_marker(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        current = PosixCopySupport("linux").point_current(cores_dir, "v1.0.0")
        assert current.is_dir() and not current.is_symlink()
        assert (current / "mihomo").read_bytes() == b"corev1.0.0"
        assert read_current_version(cores_dir) == "v1.0.0"

    def test_repoint_replaces_whole_directory(self, cores_dir: Path):
        _stage(cores_dir, "v1.0.0")
        _stage(cores_dir, "v2.0.0")
        support = PosixCopySupport("linux")
        support.point_current(cores_dir, "v1.0.0")
        (cores_dir / CURRENT_NAME / "stray").write_text("x")
        support.point_current(cores_dir, "v2.0.0")
        assert not (cores_dir / CURRENT_NAME / "stray").exists()
        assert read_current_version(cores_dir) == "v2.0.0"
        assert _scratch(cores_dir) == []


class TestWindowsSupport:
    def test_falls_back_to_copy_without_link_privilege(self, cores_dir: Path, monkeypatch):
        _stage(cores_dir, "v1.0.0", binary="mihomo.exe")

        def no_symlinks(*args, **kwargs):
            raise OSError(1314, "A required privilege is not held by the client")

        monkeypatch.setattr(os, "symlink", no_symlinks)
        support = WindowsSupport("windows")
        assert support.binary_name == "mihomo.exe"
        current = support.point_current(cores_dir, "v1.0.0")
        assert (current / "mihomo.exe").is_file()
        assert not current.is_symlink()


class TestHelpers:
    @posix_only
    def test_detect_prefers_symlinks(self, cores_dir: Path):
        assert detect_platform_support(cores_dir, "linux").name == "posix-symlink"

    def test_detect_without_symlinks(self, cores_dir: Path, monkeypatch):
        def no_symlinks(*args, **kwargs):
            raise OSError("not supported")

        monkeypatch.setattr(os, "symlink", no_symlinks)
        assert detect_platform_support(cores_dir, "linux").name == "posix-copy"

    def test_detect_windows(self, cores_dir: Path):
        assert isinstance(detect_platform_support(cores_dir, "windows"), WindowsSupport)

    def test_read_current_version_absent(self, cores_dir: Path):
        assert read_current_version(cores_dir) is None

    @posix_only
    def test_read_current_version_from_link_name(self, cores_dir: Path):
        (cores_dir / "v3.0.0").mkdir()
        os.symlink("v3.0.0", cores_dir / CURRENT_NAME)
        assert read_current_version(cores_dir) == "v3.0.0"

    @posix_only
    def test_remove_entry_kinds(self, tmp_path: Path):
        target = tmp_path / "dir"
        target.mkdir()
        (target / "f").write_text("x")
        link = tmp_path / "link"
        os.symlink("dir", link)

        remove_entry(link)
        assert not link.exists() and target.is_dir()

        remove_entry(target)
        assert not target.exists()

        f = tmp_path / "file"
        f.write_text("x")
        remove_entry(f)
        assert not f.exists()

        remove_entry(tmp_path / "missing")
