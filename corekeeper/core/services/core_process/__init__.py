"""
Core process — supervise the installed mihomo binary.
"""

from corekeeper.core.services.core_process.log_forwarder import (  # noqa: F401
    LogSink,
    forward_output,
    log_to_logger,
)
from corekeeper.core.services.core_process.manager import (  # noqa: F401
    CoreManager,
    CoreStatus,
)
