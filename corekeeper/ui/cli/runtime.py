"""
Shared CLI plumbing — build the runtime once per invocation.
"""

from __future__ import annotations

import json
import sys

import click

from corekeeper.core.services.runtime import Runtime


def get_runtime(ctx: click.Context) -> Runtime:
    """Return the runtime stored on the context, building it on first use.

    Tests inject a ready-made runtime through ``obj={"runtime": ...}``.
    """
    runtime = ctx.obj.get("runtime")
    if runtime is not None:
        return runtime

    from corekeeper.core.config.loader import ConfigError, load_settings
    from corekeeper.core.services.runtime import build_runtime

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(2)

    runtime = build_runtime(settings)
    ctx.obj["runtime"] = runtime
    return runtime


def emit_json(payload: dict, ok: bool = True) -> None:
    """Print ``payload`` as JSON and exit non-zero on failure."""
    click.echo(json.dumps(payload, indent=2))
    if not ok:
        sys.exit(1)
