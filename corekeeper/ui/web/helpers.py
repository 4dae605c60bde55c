"""
Web server shared helpers.

Functions used across the route blueprints: access to the process
runtime and the mapping from result objects to HTTP responses.
"""

from __future__ import annotations

from flask import current_app, jsonify

from corekeeper.core.services.core_install.errors import PRECONDITION_KINDS, UPSTREAM_KINDS
from corekeeper.core.services.runtime import Runtime


def get_runtime() -> Runtime:
    return current_app.config["RUNTIME"]


def status_for(kind: str | None) -> int:
    """HTTP status for a failed result's ``error_kind``."""
    if kind in PRECONDITION_KINDS:
        return 400
    if kind in UPSTREAM_KINDS:
        return 502
    return 500


def respond(result):  # type: ignore[no-untyped-def]
    """JSON for a use-case result, with an error status when it failed."""
    payload = result.to_dict()
    if getattr(result, "error", None):
        return jsonify(payload), status_for(result.error_kind)
    return jsonify(payload)
