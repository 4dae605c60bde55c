"""
``GET /api/events`` — live feed of bus events for browsers.

Each bus event becomes one text/event-stream frame whose ``event`` field
is the event type and whose ``id`` is the bus sequence number, so a
reconnecting ``EventSource`` resumes with ``Last-Event-Id`` and gets the
gap back from the bus's replay buffer.
"""

from __future__ import annotations

import json

from flask import Blueprint, Response, request

from corekeeper.ui.web.helpers import get_runtime

events_bp = Blueprint("events", __name__)

# Proxies (nginx) must neither cache nor buffer the stream
_STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def format_sse(event: dict) -> str:
    """Render one bus event as a text/event-stream frame."""
    fields = [
        ("event", event["type"]),
        ("id", event["seq"]),
        ("data", json.dumps(event, default=str)),
    ]
    return "".join(f"{name}: {value}\n" for name, value in fields) + "\n"


def _resume_point() -> int:
    """Highest of ``?since=`` and a numeric ``Last-Event-Id`` header."""
    since = request.args.get("since", 0, type=int)
    header = request.headers.get("Last-Event-Id", "")
    if header.strip().isdigit():
        since = max(since, int(header))
    return since


@events_bp.route("/events")
def event_stream():  # type: ignore[no-untyped-def]
    subscription = get_runtime().bus.subscribe(since=_resume_point())
    frames = (format_sse(event) for event in subscription)
    return Response(frames, mimetype="text/event-stream", headers=_STREAM_HEADERS)
