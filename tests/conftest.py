"""
Shared test fixtures and configuration.

No test touches the network: the registry is replaced by
``FakeRegistry``, which serves canned JSON, text and artifact bytes by
URL.  Process tests run a tiny Python script that behaves like the core.
"""

from __future__ import annotations

import io
import os
import sys
import tarfile
import textwrap
import zipfile
from pathlib import Path
from typing import Any, Iterator

import pytest

from corekeeper.core.models.settings import Settings
from corekeeper.core.services.core_install.detection.platform import HostProfile
from corekeeper.core.services.core_install.domain.platform_support import PosixSymlinkSupport
from corekeeper.core.services.core_install.errors import RegistryError
from corekeeper.core.services.core_install.execution.checksum import sha256_hex
from corekeeper.core.services.event_bus import EventBus
from corekeeper.core.services.runtime import Runtime, build_runtime

API = "https://api.github.com"
REPO = "MetaCubeX/mihomo"
DL = "https://github.com/MetaCubeX/mihomo/releases/download"

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX-only behavior")


# ── Archives ─────────────────────────────────────────────────────────


def make_zip(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def make_tar_gz(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


# ── Fake registry ────────────────────────────────────────────────────


class FakeRegistry:
    """Stands in for ``RegistryClient``; unknown URLs answer HTTP 404."""

    def __init__(self, chunk_size: int = 4, send_length: bool = True) -> None:
        self.json: dict[str, Any] = {}
        self.text: dict[str, str] = {}
        self.blobs: dict[str, bytes] = {}
        self.calls: list[str] = []
        self.chunk_size = chunk_size
        self.send_length = send_length

    def get_json(self, url: str, what: str) -> Any:
        self.calls.append(url)
        if url not in self.json:
            raise RegistryError(what, 404, '{"message": "Not Found"}')
        return self.json[url]

    def get_text(self, url: str, what: str) -> str:
        self.calls.append(url)
        if url not in self.text:
            raise RegistryError(what, 404, "Not Found")
        return self.text[url]

    def iter_chunks(self, url: str, what: str, *, chunk_size: int = 0) -> Iterator[tuple[bytes, int | None]]:
        self.calls.append(url)
        if url not in self.blobs:
            raise RegistryError(what, 404, "Not Found")
        data = self.blobs[url]
        total = len(data) if self.send_length else None
        step = chunk_size or self.chunk_size
        for start in range(0, len(data), step):
            yield data[start:start + step], total

    # ── Release builders ────────────────────────────────────────

    def add_release(
        self,
        version: str,
        artifacts: dict[str, bytes],
        *,
        prerelease: bool = False,
        checksums: bool = True,
        tag: str | None = None,
    ) -> dict:
        """Register a release with version.txt, artifacts and a checksum listing."""
        tag = tag or version
        assets = []
        version_url = f"{DL}/{tag}/version.txt"
        self.text[version_url] = version + "\n"
        assets.append({"name": "version.txt", "browser_download_url": version_url})

        for name, data in artifacts.items():
            url = f"{DL}/{tag}/{name}"
            self.blobs[url] = data
            assets.append({"name": name, "browser_download_url": url})

        if checksums:
            url = f"{DL}/{tag}/checksums.txt"
            self.text[url] = "".join(
                f"{sha256_hex(data)}  {name}\n" for name, data in artifacts.items()
            )
            assets.append({"name": "checksums.txt", "browser_download_url": url})

        return {
            "tag_name": tag,
            "published_at": "2025-01-01T00:00:00Z",
            "prerelease": prerelease,
            "assets": assets,
        }

    def set_latest(self, release: dict) -> None:
        self.json[f"{API}/repos/{REPO}/releases/latest"] = release

    def set_list(self, releases: list[dict], per_page: int = 10) -> None:
        self.json[f"{API}/repos/{REPO}/releases?per_page={per_page}"] = releases


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


# ── Host ─────────────────────────────────────────────────────────────


@pytest.fixture
def linux_v3_host() -> HostProfile:
    return HostProfile(
        platform_id="linux",
        arch="amd64",
        arch_keywords=("amd64", "x86_64", "x64"),
        variant_preference=("v3", "v2", "v1", "", "compatible"),
        binary_name="mihomo",
    )


@pytest.fixture
def cores_dir(tmp_path: Path) -> Path:
    d = tmp_path / "cores"
    d.mkdir()
    return d


@pytest.fixture
def runtime(cores_dir: Path, registry: FakeRegistry, linux_v3_host: HostProfile) -> Runtime:
    """Runtime wired to the fake registry and a temporary cores dir."""
    settings = Settings(cores_dir=cores_dir)
    return build_runtime(
        settings,
        client=registry,  # type: ignore[arg-type]
        host=linux_v3_host,
        support=PosixSymlinkSupport("linux"),
        bus=EventBus(),
    )


# ── Fake core executable ─────────────────────────────────────────────


FAKE_CORE = textwrap.dedent("""\
    import sys, time
    config = sys.argv[sys.argv.index("-f") + 1]
    print("fake core starting with " + config, flush=True)
    print("fake core warning", file=sys.stderr, flush=True)
    with open(config) as f:
        mode = f.read().strip()
    if mode == "exit":
        sys.exit(0)
    if mode == "chatty":
        for i in range(200):
            print("tick %d" % i, flush=True)
            time.sleep(0.005)
    deadline = time.time() + 60
    while time.time() < deadline:
        time.sleep(0.05)
""")


@pytest.fixture
def fake_core(tmp_path: Path) -> Path:
    """Executable script accepting ``-f <config>`` like the real core."""
    script = tmp_path / "bin" / "mihomo"
    script.parent.mkdir()
    script.write_text(f"#!{sys.executable}\n{FAKE_CORE}")
    script.chmod(0o755)
    return script


@pytest.fixture
def core_config(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text("run\n")
    return path


@pytest.fixture
def exiting_config(tmp_path: Path) -> Path:
    path = tmp_path / "exit.yaml"
    path.write_text("exit\n")
    return path


@pytest.fixture
def chatty_config(tmp_path: Path) -> Path:
    """Makes the fake core print a steady stream of lines before idling."""
    path = tmp_path / "chatty.yaml"
    path.write_text("chatty\n")
    return path
