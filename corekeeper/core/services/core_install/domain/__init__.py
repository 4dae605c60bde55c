"""
L1 Domain — ``__init__.py`` re-exports the platform capability.
"""

from corekeeper.core.services.core_install.domain.platform_support import (  # noqa: F401
    CURRENT_NAME,
    VERSION_MARKER,
    PlatformSupport,
    PosixCopySupport,
    PosixSymlinkSupport,
    WindowsSupport,
    detect_platform_support,
    read_current_version,
    remove_entry,
    set_executable,
    symlinks_supported,
)
