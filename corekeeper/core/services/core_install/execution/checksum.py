"""
L4 Execution — checksum verification.

Listing format: newline-separated text, the first whitespace-delimited
token of each non-blank line is a hex digest (any case).  Extra columns
(file names, ``*`` binary markers) are ignored.
"""

from __future__ import annotations

import hashlib
import logging

from corekeeper.core.services.core_install.errors import ChecksumMismatch

logger = logging.getLogger(__name__)


def sha256_hex(data: bytes) -> str:
    """Lowercase hex SHA-256 of ``data``."""
    return hashlib.sha256(data).hexdigest()


def verify_sha256(data: bytes, listing: str) -> None:
    """Check that the digest of ``data`` appears in ``listing``.

    Raises:
        ChecksumMismatch: When no line carries the digest.
    """
    actual = sha256_hex(data)
    lines = 0
    for line in listing.splitlines():
        tokens = line.split()
        if not tokens:
            continue
        lines += 1
        if tokens[0].lower() == actual:
            logger.info("Checksum verified (sha256 %s)", actual)
            return

    raise ChecksumMismatch(
        f"SHA-256 {actual} not found in checksum listing ({lines} entries)"
    )
