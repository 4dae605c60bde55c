"""
Runtime — wires the managers together once per process.

    settings ─▶ RegistryClient ─▶ ReleaseResolver ─┐
    detect_host() / detect_platform_support() ─────┼─▶ VersionManager
                                                   │
    VersionManager.default_core_path() ────────────┴─▶ CoreManager

Both managers are wrapped in ``Shared``; the CLI and the web server
receive the resulting ``Runtime`` and never build managers themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from corekeeper.core.models.settings import Settings
from corekeeper.core.services.core_install.detection.platform import HostProfile, detect_host
from corekeeper.core.services.core_install.domain.platform_support import (
    PlatformSupport,
    detect_platform_support,
)
from corekeeper.core.services.core_install.orchestration.version_manager import VersionManager
from corekeeper.core.services.core_install.resolver.registry_client import RegistryClient
from corekeeper.core.services.core_install.resolver.release_resolver import ReleaseResolver
from corekeeper.core.services.core_process.log_forwarder import log_to_logger
from corekeeper.core.services.core_process.manager import CoreManager
from corekeeper.core.services.event_bus import CORE_LOG, EventBus
from corekeeper.core.services.shared import Shared

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    versions: Shared[VersionManager]
    core: Shared[CoreManager]
    bus: EventBus = field(default_factory=EventBus)


def build_runtime(
    settings: Settings,
    *,
    client: RegistryClient | None = None,
    host: HostProfile | None = None,
    support: PlatformSupport | None = None,
    bus: EventBus | None = None,
) -> Runtime:
    """Construct the managers for ``settings``.

    The optional arguments replace the real collaborators (tests).
    """
    bus = bus or EventBus()
    client = client or RegistryClient(
        token_env=settings.token_env, timeout=settings.request_timeout,
    )
    resolver = ReleaseResolver(
        client,
        repository=settings.repository,
        api_base=settings.api_base,
        dev_page_size=settings.dev_page_size,
    )
    host = host or detect_host()
    support = support or detect_platform_support(settings.cores_dir, host.platform_id)

    versions = VersionManager(
        settings.cores_dir,
        resolver=resolver,
        client=client,
        host=host,
        support=support,
    )
    versions.detect_current()

    def log_sink(stream: str, line: str) -> None:
        log_to_logger(stream, line)
        bus.publish(CORE_LOG, key=stream, data={"stream": stream, "line": line})

    core = CoreManager(versions.current_core_path, log_sink=log_sink)

    logger.debug("Runtime ready: %s", versions.to_dict())
    return Runtime(
        settings=settings,
        versions=Shared(versions),
        core=Shared(core),
        bus=bus,
    )
