"""
L4 Execution — ``__init__.py`` re-exports the side-effecting steps.

Everything here WRITES: downloads into memory, verifies, unpacks onto disk.
"""

from corekeeper.core.services.core_install.execution.archive import (  # noqa: F401
    archive_kind,
    find_binary,
    install_archive,
)
from corekeeper.core.services.core_install.execution.checksum import (  # noqa: F401
    sha256_hex,
    verify_sha256,
)
from corekeeper.core.services.core_install.execution.download import (  # noqa: F401
    ProgressCallback,
    download_bytes,
    download_percent,
)
