"""
L3 Detection — ``__init__.py`` re-exports all detection functions.

These functions only READ the system.
"""

from corekeeper.core.services.core_install.detection.platform import (  # noqa: F401
    FLAT_PREFERENCE,
    X86_LADDER,
    HostProfile,
    arch_keywords,
    binary_name,
    detect_host,
    normalize_arch,
    platform_id,
    read_cpu_flags,
    variant_preference,
    x86_level,
)
