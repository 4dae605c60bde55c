"""
Web server — Flask app factory.

Creates the Flask application serving corekeeper's JSON API, the
surface a desktop or browser front end drives.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify

from corekeeper import __version__
from corekeeper.core.services.runtime import Runtime

logger = logging.getLogger(__name__)


def create_app(runtime: Runtime) -> Flask:
    """Create and configure the Flask application.

    Args:
        runtime: Managers and event bus shared by every request.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)
    app.config["RUNTIME"] = runtime

    from corekeeper.ui.web.routes_core import core_bp
    from corekeeper.ui.web.routes_events import events_bp

    app.register_blueprint(core_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")

    @app.route("/api/health")
    def health():  # type: ignore[no-untyped-def]
        return jsonify({"status": "ok", "version": __version__})

    logger.info("Web app created (cores=%s)", runtime.settings.cores_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting corekeeper API on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
