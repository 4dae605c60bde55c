"""
Core routes — process control and version management.

All endpoints return JSON under the /api/ prefix.  Failures carry
``{"error", "kind"}`` with 400 for caller mistakes, 502 when the
registry is at fault and 500 otherwise.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from corekeeper.ui.web.helpers import get_runtime, respond

logger = logging.getLogger(__name__)

core_bp = Blueprint("core", __name__)


def _channel_arg() -> str:
    channel = request.args.get("channel")
    if channel is None and request.is_json:
        channel = (request.get_json(silent=True) or {}).get("channel")
    return channel or str(get_runtime().settings.default_channel)


# ── Process ─────────────────────────────────────────────────────────


@core_bp.route("/core/status")
def core_status():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_control import core_status as _status

    return respond(_status(get_runtime()))


@core_bp.route("/core/start", methods=["POST"])
def core_start():  # type: ignore[no-untyped-def]
    """Start the core.  Body: ``{"config_path": "..."}`` (optional)."""
    from corekeeper.core.use_cases.core_control import start_core

    body = request.get_json(silent=True) or {}
    return respond(start_core(get_runtime(), body.get("config_path")))


@core_bp.route("/core/stop", methods=["POST"])
def core_stop():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_control import stop_core

    return respond(stop_core(get_runtime()))


@core_bp.route("/core/restart", methods=["POST"])
def core_restart():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_control import restart_core

    return respond(restart_core(get_runtime()))


# ── Versions ────────────────────────────────────────────────────────


@core_bp.route("/version/latest")
def version_latest():  # type: ignore[no-untyped-def]
    """Newest release on ``?channel=`` (no download)."""
    from corekeeper.core.use_cases.core_update import check_latest

    return respond(check_latest(get_runtime(), _channel_arg()))


@core_bp.route("/version/plan")
def version_plan():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_update import plan_download

    return respond(plan_download(get_runtime(), _channel_arg()))


@core_bp.route("/version/install", methods=["POST"])
def version_install():  # type: ignore[no-untyped-def]
    """Download and install.  Body: ``{"channel": "stable"|"dev", "restart": bool}``.

    Blocks until the install finishes; progress goes out on /api/events.
    """
    from corekeeper.core.use_cases.core_update import install_latest

    body = request.get_json(silent=True) or {}
    channel = body.get("channel") or _channel_arg()
    result = install_latest(get_runtime(), channel, restart=bool(body.get("restart")))
    return respond(result)


@core_bp.route("/version/install-dir")
def version_install_dir():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_update import install_info

    info = install_info(get_runtime())
    return jsonify({"install_dir": str(info.install_dir)})


@core_bp.route("/version/default-path")
def version_default_path():  # type: ignore[no-untyped-def]
    """``current/<binary>`` if installed, else null."""
    from corekeeper.core.use_cases.core_update import install_info

    info = install_info(get_runtime())
    path = str(info.default_core_path) if info.default_core_path else None
    return jsonify({"default_core_path": path})


@core_bp.route("/version/installed")
def version_installed():  # type: ignore[no-untyped-def]
    from corekeeper.core.use_cases.core_update import install_info

    return jsonify(install_info(get_runtime()).to_dict())
