"""
Domain models — Pydantic types for corekeeper.

All models are re-exported here for convenient access:

    from corekeeper.core.models import Asset, DownloadPlan, ReleaseChannel, Settings
"""

from corekeeper.core.models.release import (
    Asset,
    DownloadPlan,
    ReleaseChannel,
    ReleaseDescriptor,
    VersionInfo,
)
from corekeeper.core.models.settings import Settings

__all__ = [
    # release.py
    "Asset",
    "DownloadPlan",
    "ReleaseChannel",
    "ReleaseDescriptor",
    "VersionInfo",
    # settings.py
    "Settings",
]
