"""
L4 Execution — streamed artifact download with progress.

Progress is reported on a 0–100 scale shared by the whole install;
the download owns the 1–90 band:

    known length     clamp(received / total * 90, 1, 90)
    unknown length   (received // 1 MiB) % 90   (wraps, keeps moving)

The callback only fires when the integer value changes.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DOWNLOAD_FLOOR = 1
DOWNLOAD_CEILING = 90

# (stage, percent, message)
ProgressCallback = Callable[[str, int, str], None]


class ChunkSource(Protocol):
    def iter_chunks(self, url: str, what: str) -> Iterator[tuple[bytes, Optional[int]]]: ...


def download_percent(received: int, total: int | None) -> int:
    """Map bytes received to the download band of the progress scale."""
    if total:
        raw = int(received * DOWNLOAD_CEILING / total)
        return max(DOWNLOAD_FLOOR, min(DOWNLOAD_CEILING, raw))
    return (received // MIB) % DOWNLOAD_CEILING


def download_bytes(
    client: ChunkSource,
    url: str,
    what: str,
    on_progress: ProgressCallback | None = None,
) -> bytes:
    """Fetch ``url`` fully into memory, reporting progress as it streams."""
    buffer = bytearray()
    last: int | None = None

    for chunk, total in client.iter_chunks(url, what):
        buffer.extend(chunk)
        if on_progress is None:
            continue
        percent = download_percent(len(buffer), total)
        if percent != last:
            last = percent
            if total:
                message = f"Downloading {what}: {len(buffer)}/{total} bytes"
            else:
                message = f"Downloading {what}: {len(buffer)} bytes"
            on_progress("download", percent, message)

    logger.info("Downloaded %s (%d bytes)", what, len(buffer))
    return bytes(buffer)
