"""
L5 Orchestration — ``__init__.py`` re-exports the version manager.
"""

from corekeeper.core.services.core_install.orchestration.version_manager import (  # noqa: F401
    VersionManager,
    validate_version,
)
