"""
EventBus — thread-safe, in-process pub/sub with bounded replay.

Install progress, core status changes and core output lines are all
published here.  SSE clients subscribe and receive a live stream; on
reconnect the bus replays missed events from a bounded ring buffer, or
sends a state snapshot if the client was away too long.

Thread safety model
───────────────────
- ``_lock`` protects ``_seq``, ``_buffer``, ``_subscribers`` and
  ``_latest``.
- Each subscriber gets its own ``queue.Queue``; ``publish()`` pushes
  with ``put_nowait`` and drops subscribers whose queue is full, so a
  slow consumer never blocks a download or a log reader thread.
- A dropped subscriber still receives its queued backlog; after that
  its ``subscribe()`` generator returns instead of waiting forever.
  Consumers resubscribe with the last ``seq`` they saw.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                       # schema version
        "ts": 1739648400.123,         # server timestamp
        "seq": 47,                    # monotonic sequence
        "type": "install:progress",   # <domain>:<action>
        "key": "stable",              # resource identifier
        "data": { ... },              # event-specific payload
    }

Event types:
    install:progress   {stage, progress, message}    key = channel
    core:status        {status, pid, core_path, config}
    core:log           {stream, line}
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from typing import Any, Generator

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

INSTALL_PROGRESS = "install:progress"
CORE_STATUS = "core:status"
CORE_LOG = "core:log"

# Event types whose last payload is kept for snapshots
_STATEFUL_TYPES = frozenset({INSTALL_PROGRESS, CORE_STATUS})


class EventBus:
    """Thread-safe, in-process pub/sub with bounded replay buffer.

    Parameters
    ----------
    buffer_size : int
        Maximum number of events kept for replay.  Clients reconnecting
        after their ``Last-Event-Id`` was evicted get a snapshot instead.
    subscriber_queue_size : int
        Maximum backlog per subscriber.  A subscriber whose queue fills
        up is dropped.
    """

    def __init__(
        self,
        *,
        buffer_size: int = 500,
        subscriber_queue_size: int = 200,
    ) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict] = deque(maxlen=buffer_size)
        self._subscribers: list[queue.Queue[dict]] = []
        self._subscriber_queue_size = subscriber_queue_size
        self._instance_id: str = time.strftime("%Y-%m-%dT%H:%M:%S")
        self._latest: dict[str, dict] = {}  # event type → last payload

    # ── Properties ──────────────────────────────────────────────

    @property
    def instance_id(self) -> str:
        """Server instance identifier (boot timestamp)."""
        return self._instance_id

    @property
    def seq(self) -> int:
        with self._lock:
            return self._seq

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    # ── Publishing ──────────────────────────────────────────────

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict:
        """Broadcast an event to every subscriber; never blocks.

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)

            if event_type in _STATEFUL_TYPES:
                self._latest[event_type] = {"key": key, "data": data or {}, "at": event["ts"]}

            dead: list[queue.Queue[dict]] = []
            for q in self._subscribers:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead.append(q)
            for q in dead:
                self._subscribers.remove(q)
                logger.warning("Dropped unresponsive subscriber (queue full)")

        # Core output is already logged by the sink
        if event_type != CORE_LOG:
            logger.debug("event %s key=%s", event_type, key or "-")

        return event

    # ── Subscribing ─────────────────────────────────────────────

    def subscribe(
        self,
        *,
        since: int = 0,
        heartbeat_interval: float = 30.0,
    ) -> Generator[dict, None, None]:
        """Yield events for one client.  Blocks between events.

        Ends once the bus has dropped this subscriber and its backlog
        has been delivered.

        Parameters
        ----------
        since : int
            Sequence number to resume from.  Buffered events with
            ``seq > since`` are replayed; 0 or an evicted position gets a
            ``state:snapshot`` instead.
        heartbeat_interval : float
            Seconds between ``sys:heartbeat`` events when idle.
        """
        q: queue.Queue[dict] = queue.Queue(maxsize=self._subscriber_queue_size)
        need_snapshot = True

        with self._lock:
            if since > 0 and self._buffer and since >= self._buffer[0]["seq"]:
                need_snapshot = False
                for event in self._buffer:
                    if event["seq"] <= since:
                        continue
                    try:
                        q.put_nowait(event)
                    except queue.Full:
                        need_snapshot = True
                        q = queue.Queue(maxsize=self._subscriber_queue_size)
                        break
            self._subscribers.append(q)
            count = len(self._subscribers)

        logger.info("Subscriber connected (since=%d, snapshot=%s, subscribers=%d)", since, need_snapshot, count)

        try:
            yield self._make_event("sys:ready", {"instance_id": self._instance_id})
            if need_snapshot:
                yield self._make_event("state:snapshot", self.snapshot())

            while True:
                if q.empty() and not self._is_subscribed(q):
                    logger.info("Subscriber stream ended after being dropped")
                    return
                try:
                    yield q.get(timeout=heartbeat_interval)
                except queue.Empty:
                    yield self._make_event("sys:heartbeat", {})
        finally:
            with self._lock:
                if q in self._subscribers:
                    self._subscribers.remove(q)
                count = len(self._subscribers)
            logger.info("Subscriber disconnected (subscribers=%d)", count)

    # ── Snapshot ────────────────────────────────────────────────

    def snapshot(self) -> dict[str, dict]:
        """Last payload of each stateful event type, with its age."""
        with self._lock:
            now = time.time()
            return {
                event_type: {
                    "key": entry["key"],
                    "data": entry["data"],
                    "age_s": round(now - entry["at"]),
                }
                for event_type, entry in self._latest.items()
            }

    def recent(self, event_type: str | None = None, limit: int = 100) -> list[dict]:
        """Most recent buffered events, oldest first."""
        with self._lock:
            events = [e for e in self._buffer if event_type is None or e["type"] == event_type]
        return events[-limit:]

    def _is_subscribed(self, q: queue.Queue[dict]) -> bool:
        with self._lock:
            return q in self._subscribers

    def _make_event(self, event_type: str, data: dict) -> dict:
        """Per-client event: gets a sequence number but is not broadcast."""
        with self._lock:
            self._seq += 1
            return {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": "",
                "data": data,
            }
