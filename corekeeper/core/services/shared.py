"""
Shared — an explicit mutex around one manager instance.

Managers are plain objects built once at startup.  Every caller that
touches one goes through its ``Shared`` wrapper, so installs never
overlap and start/stop pairs never interleave::

    with runtime.versions.lock() as vm:
        vm.download_install_latest(channel)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class Shared(Generic[T]):
    def __init__(self, value: T) -> None:
        self._value = value
        self._lock = threading.RLock()

    @contextmanager
    def lock(self) -> Iterator[T]:
        """Hold the mutex for the duration of the ``with`` block."""
        with self._lock:
            yield self._value

