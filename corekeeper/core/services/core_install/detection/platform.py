"""
L3 Detection — platform, architecture and CPU feature level.

Read-only probes: ``sys.platform``, ``platform.machine()``,
/proc/cpuinfo (Linux), ``sysctl machdep.cpu`` (macOS).

The CPU probe feeds the x86-64 variant ladder used by the artifact
selector:

    x86-64-v3  avx2 bmi1 bmi2 fma movbe   → v3, v2, v1, "", compatible
    x86-64-v2  sse4_2 popcnt ssse3 cx16   → v2, v1, "", compatible
    baseline / probe unavailable          → v1, "", compatible

Other architectures get the flat list ("", compatible).
"""

from __future__ import annotations

import functools
import logging
import platform
import subprocess
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# ── Architecture tables ────────────────────────────────────

# platform.machine() → registry arch name
_MACHINE_MAP: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",      # Windows reports AMD64
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",      # macOS (Darwin reports arm64)
    "armv8l": "arm64",
    "armv7l": "armv7",
    "armv6l": "armv6",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "riscv64": "riscv64",
    "loongarch64": "loong64",
    "s390x": "s390x",
    "ppc64le": "ppc64le",
}

# Registry arch name → substrings that denote it in asset names
_ARCH_SYNONYMS: dict[str, tuple[str, ...]] = {
    "amd64": ("amd64", "x86_64", "x64"),
    "arm64": ("arm64", "aarch64", "armv8"),
    "armv7": ("armv7",),
    "armv6": ("armv6",),
    "386": ("386", "i386"),
    "riscv64": ("riscv64",),
    "loong64": ("loong64",),
    "s390x": ("s390x",),
    "ppc64le": ("ppc64le",),
}

_V2_FLAGS = frozenset({"sse4_2", "popcnt", "ssse3", "cx16"})
_V3_FLAGS = frozenset({"avx2", "bmi1", "bmi2", "fma", "movbe"})

X86_LADDER: dict[int, tuple[str, ...]] = {
    3: ("v3", "v2", "v1", "", "compatible"),
    2: ("v2", "v1", "", "compatible"),
    1: ("v1", "", "compatible"),
}
FLAT_PREFERENCE: tuple[str, ...] = ("", "compatible")


def platform_id(sys_platform: str | None = None) -> str:
    """OS keyword as it appears in asset names."""
    value = (sys_platform or sys.platform).lower()
    if value.startswith("win") or value == "cygwin":
        return "windows"
    if value == "darwin":
        return "darwin"
    if value.startswith("linux"):
        return "linux"
    if value.startswith("freebsd"):
        return "freebsd"
    return value


def binary_name(platform_key: str) -> str:
    """File name of the core executable on ``platform_key``."""
    return "mihomo.exe" if platform_key == "windows" else "mihomo"


def normalize_arch(machine: str | None = None) -> str:
    raw = (machine if machine is not None else platform.machine()).strip()
    return _MACHINE_MAP.get(raw.lower(), raw.lower())


def arch_keywords(arch: str) -> tuple[str, ...]:
    return _ARCH_SYNONYMS.get(arch, (arch,))


# ── CPU features ───────────────────────────────────────────


def read_cpu_flags() -> frozenset[str]:
    """Instruction-set flags of the executing CPU, lower-cased.

    Returns an empty set when the platform offers no way to read them.
    """
    flags: list[str] = []

    try:
        with open("/proc/cpuinfo") as f:
            for line in f:
                if line.startswith("flags"):
                    flags = line.split(":", 1)[1].strip().split()
                    break
    except (FileNotFoundError, IndexError, PermissionError):
        # macOS or non-Linux
        if platform.system() == "Darwin":
            for key in ("machdep.cpu.features", "machdep.cpu.leaf7_features"):
                try:
                    r = subprocess.run(
                        ["sysctl", "-n", key],
                        capture_output=True, text=True, timeout=5,
                    )
                except (OSError, subprocess.TimeoutExpired):
                    continue
                flags.extend(r.stdout.strip().split())

    # "SSE4.2" (sysctl) and "sse4_2" (cpuinfo) name the same thing
    return frozenset(f.lower().replace(".", "_") for f in flags)


def x86_level(flags: frozenset[str]) -> int:
    """Microarchitecture level 1–3 supported by ``flags``."""
    if not _V2_FLAGS <= flags:
        return 1
    if not _V3_FLAGS <= flags:
        return 2
    return 3


def variant_preference(arch: str, flags: frozenset[str] | None = None) -> tuple[str, ...]:
    """Variant tags in order of preference for this CPU."""
    if arch != "amd64":
        return FLAT_PREFERENCE
    if flags is None:
        flags = read_cpu_flags()
    return X86_LADDER[x86_level(flags)]


# ── Host profile ───────────────────────────────────────────


@dataclass(frozen=True)
class HostProfile:
    """Everything the selector needs to know about this machine."""

    platform_id: str
    arch: str
    arch_keywords: tuple[str, ...]
    variant_preference: tuple[str, ...]
    binary_name: str

    def to_dict(self) -> dict:
        return {
            "platform": self.platform_id,
            "arch": self.arch,
            "arch_keywords": list(self.arch_keywords),
            "variant_preference": list(self.variant_preference),
            "binary_name": self.binary_name,
        }


@functools.lru_cache(maxsize=1)
def detect_host() -> HostProfile:
    """Probe the running machine once per process."""
    pid = platform_id()
    arch = normalize_arch()
    profile = HostProfile(
        platform_id=pid,
        arch=arch,
        arch_keywords=arch_keywords(arch),
        variant_preference=variant_preference(arch),
        binary_name=binary_name(pid),
    )
    logger.info(
        "Host: platform=%s arch=%s variants=%s",
        profile.platform_id, profile.arch, ",".join(v or "<none>" for v in profile.variant_preference),
    )
    return profile
