"""
Error taxonomy for core install and supervision.

Every failure the services can produce is a ``CoreKeeperError``
subclass with a stable ``kind`` string.  Services raise them; the
use-case layer (``corekeeper.core.use_cases``) catches them and turns
them into result objects, so nothing crosses the orchestration
boundary as an exception.

Groups:
    transport       NetworkError (retryable by the caller)
    registry        RegistryError (status + truncated body)
    data integrity  ParseError, NotFoundError, BinaryNotFound, ChecksumMismatch
    filesystem      InstallError
    preconditions   InvalidChannel, NoCorePathConfigured, CoreBinaryMissing,
                    ConfigMissing, NoConfigToRestart
    process         SpawnError, StopError (carry the OS error text)
"""

from __future__ import annotations

# Response bodies quoted in RegistryError are cut to this many characters
SNIPPET_MAX = 200


def truncate(text: str, limit: int = SNIPPET_MAX) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut with ``...``."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


class CoreKeeperError(Exception):
    """Base class for every typed failure."""

    kind = "error"


# ── Registry / network ─────────────────────────────────────────


class NetworkError(CoreKeeperError):
    """Transport-level failure talking to the registry or a download URL."""

    kind = "network"


class RegistryError(CoreKeeperError):
    """The registry answered with a non-success HTTP status."""

    kind = "registry"

    def __init__(self, what: str, status: int, body: str = "") -> None:
        self.what = what
        self.status = status
        self.snippet = truncate(body)
        super().__init__(f"{what}: HTTP {status} - {self.snippet}")


class ParseError(CoreKeeperError):
    """A response body or archive could not be understood."""

    kind = "parse"


class NotFoundError(CoreKeeperError):
    """The registry returned no usable release or asset."""

    kind = "not_found"


# ── Install ────────────────────────────────────────────────────


class BinaryNotFound(CoreKeeperError):
    """The extracted artifact does not contain the expected executable."""

    kind = "binary_not_found"


class ChecksumMismatch(CoreKeeperError):
    """The downloaded bytes are not listed in the published checksums."""

    kind = "checksum_mismatch"


class InstallError(CoreKeeperError):
    """A filesystem operation failed while staging or switching versions."""

    kind = "install"


class InvalidChannel(CoreKeeperError):
    """Channel name is neither ``stable`` nor ``dev``."""

    kind = "invalid_channel"


# ── Process supervision ────────────────────────────────────────


class NoCorePathConfigured(CoreKeeperError):
    kind = "no_core_path_configured"

    def __init__(self, message: str = "No core executable path is configured") -> None:
        super().__init__(message)


class CoreBinaryMissing(CoreKeeperError):
    kind = "core_binary_missing"


class ConfigMissing(CoreKeeperError):
    kind = "config_missing"


class NoConfigToRestart(CoreKeeperError):
    kind = "no_config_to_restart"

    def __init__(self, message: str = "No configuration has been used yet; nothing to restart") -> None:
        super().__init__(message)


class SpawnError(CoreKeeperError):
    kind = "spawn"


class StopError(CoreKeeperError):
    kind = "stop"


# Kinds the HTTP/CLI layers treat as caller mistakes rather than faults
PRECONDITION_KINDS = frozenset({
    InvalidChannel.kind,
    NoCorePathConfigured.kind,
    CoreBinaryMissing.kind,
    ConfigMissing.kind,
    NoConfigToRestart.kind,
})

# Kinds caused by the remote side
UPSTREAM_KINDS = frozenset({
    NetworkError.kind,
    RegistryError.kind,
    NotFoundError.kind,
})
