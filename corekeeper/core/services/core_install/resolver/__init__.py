"""
L2 Resolver — ``__init__.py`` re-exports all resolver functions.

Everything here decides WHAT to install: which release, which asset.
Only ``RegistryClient`` touches the network.
"""

from corekeeper.core.services.core_install.resolver.artifact_selector import (  # noqa: F401
    KNOWN_VARIANT_TAGS,
    NO_VARIANT,
    format_rank,
    is_checksum_asset,
    matches_platform,
    score_asset,
    select_asset,
    variant_index,
    variant_tags,
)
from corekeeper.core.services.core_install.resolver.registry_client import (  # noqa: F401
    RegistryClient,
)
from corekeeper.core.services.core_install.resolver.release_resolver import (  # noqa: F401
    VERSION_ASSET,
    ReleaseResolver,
    parse_channel,
)
