"""
L2 Resolver — pick the one asset that fits this machine.

Pure function over asset names; no I/O.

Filter:
    name contains the platform keyword AND one of the arch synonyms.

Score (lower is better):
    variant_index * 100     position of the first preferred variant tag
                            found in the name ("" = no variant tag)
    + 10                    name carries a compatibility-toolchain tag
                            (``go120`` and friends)
    + format rank           preferred archive 0, other archive 1,
                            bare file 2, OS installer package 5

Variant tags are matched as delimited tokens, so the version part of
``mihomo-linux-amd64-v1.19.0.gz`` is not read as the ``v1`` tag.  A
name whose only variant tags are missing from the preference list is
ineligible: a v1-only CPU never gets a ``-v3`` build.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from corekeeper.core.models.release import Asset

logger = logging.getLogger(__name__)

# Every variant tag the registry is known to publish
KNOWN_VARIANT_TAGS = ("v1", "v2", "v3", "compatible")

# Empty-tag sentinel: "no explicit variant" in a preference list
NO_VARIANT = ""

VARIANT_WEIGHT = 100
RUNTIME_TAG_PENALTY = 10

_RUNTIME_TAG = re.compile(r"(?:^|[-_.])go1\d{2}(?=$|[-_.])")

_INSTALLER_SUFFIXES = (".deb", ".rpm", ".apk", ".msi", ".dmg", ".pkg", ".pkg.tar.zst")
_GZIP_SUFFIXES = (".tar.gz", ".tgz", ".gz")


def _tag_pattern(tag: str) -> re.Pattern[str]:
    # A dot only ends the tag when no digit follows ("v3.gz" yes, "v1.19" no)
    return re.compile(rf"(?:^|[-_.]){re.escape(tag)}(?=$|[-_]|\.(?!\d))")


_TAG_PATTERNS = {tag: _tag_pattern(tag) for tag in KNOWN_VARIANT_TAGS}


def variant_tags(name: str) -> set[str]:
    """Known variant tags present in an asset name (lower-cased input)."""
    lowered = name.lower()
    return {tag for tag, pattern in _TAG_PATTERNS.items() if pattern.search(lowered)}


def variant_index(name: str, preference: Sequence[str]) -> int | None:
    """Position of ``name`` in the variant preference list, or None if ineligible."""
    lowered = name.lower()
    for index, tag in enumerate(preference):
        if tag == NO_VARIANT:
            continue
        pattern = _TAG_PATTERNS.get(tag) or _tag_pattern(tag)
        if pattern.search(lowered):
            return index

    if NO_VARIANT in preference and not variant_tags(lowered):
        return preference.index(NO_VARIANT)
    return None


def format_rank(name: str, platform_id: str) -> int:
    """Packaging preference: raw archives first, installer packages last."""
    lowered = name.lower()
    if lowered.endswith(_INSTALLER_SUFFIXES):
        return 5
    is_zip = lowered.endswith(".zip")
    is_gzip = lowered.endswith(_GZIP_SUFFIXES)
    if platform_id == "windows":
        if is_zip:
            return 0
        if is_gzip:
            return 1
    else:
        if is_gzip:
            return 0
        if is_zip:
            return 1
    return 2


def is_checksum_asset(name: str) -> bool:
    """Checksum listings are never installable artifacts."""
    lowered = name.lower()
    return "sha256" in lowered or "checksum" in lowered


def matches_platform(name: str, platform_id: str, arch_keywords: Iterable[str]) -> bool:
    lowered = name.lower()
    if is_checksum_asset(lowered):
        return False
    if platform_id.lower() not in lowered:
        return False
    return any(keyword.lower() in lowered for keyword in arch_keywords)


def score_asset(name: str, platform_id: str, preference: Sequence[str]) -> int | None:
    """Score one asset name; None means it must not be installed here."""
    index = variant_index(name, preference)
    if index is None:
        return None
    score = index * VARIANT_WEIGHT
    if _RUNTIME_TAG.search(name.lower()):
        score += RUNTIME_TAG_PENALTY
    return score + format_rank(name, platform_id)


def select_asset(
    assets: Iterable[Asset],
    platform_id: str,
    arch_keywords: Sequence[str],
    variant_preference: Sequence[str],
) -> Asset | None:
    """Return the best asset for this machine, or None if nothing fits.

    Ties keep the registry's order, so the result is deterministic.
    """
    best: Asset | None = None
    best_score: int | None = None

    for asset in assets:
        if not matches_platform(asset.name, platform_id, arch_keywords):
            continue
        score = score_asset(asset.name, platform_id, variant_preference)
        if score is None:
            logger.debug("Skipping %s: variant not supported here", asset.name)
            continue
        logger.debug("Candidate %s scored %d", asset.name, score)
        if best_score is None or score < best_score:
            best, best_score = asset, score

    if best is None:
        logger.info(
            "No asset for platform=%s arch=%s among the release assets",
            platform_id, "/".join(arch_keywords),
        )
    else:
        logger.info("Selected asset %s (score %d)", best.name, best_score)
    return best
