"""
corekeeper — CLI entrypoint.

Usage:
    corekeeper --help
    corekeeper version check --channel dev
    corekeeper version install
    corekeeper core run ./config.yaml
    corekeeper web
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from corekeeper import __version__
from corekeeper.core.observability.logging_config import (
    ENV_CORE_LOG_FILE,
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="corekeeper")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to corekeeper.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """corekeeper — install, update and supervise the mihomo core."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
        core_log_file=os.environ.get(ENV_CORE_LOG_FILE),
    )


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address.")
@click.option("--port", "-p", default=8000, type=int, help="Port number.")
@click.pass_context
def web(ctx: click.Context, host: str, port: int) -> None:
    """Serve the HTTP API (status, start/stop, install, events)."""
    from corekeeper.ui.cli.runtime import get_runtime
    from corekeeper.ui.web.server import create_app, run_server

    runtime = get_runtime(ctx)
    app = create_app(runtime)

    debug = ctx.obj.get("debug", False)
    click.echo()
    click.secho("⚡ corekeeper — HTTP API", bold=True)
    click.echo(f"   API:   http://{host}:{port}/api")
    click.echo(f"   Cores: {runtime.settings.cores_dir}")
    if debug:
        click.secho("   Logging: DEBUG (all output)", fg="yellow")
    click.echo()

    run_server(app, host=host, port=port, debug=debug)


# ── Register sub-command groups from corekeeper/ui/cli/ ─────────
from corekeeper.ui.cli.core import core  # noqa: E402
from corekeeper.ui.cli.version import version  # noqa: E402

cli.add_command(core)
cli.add_command(version)


if __name__ == "__main__":
    cli()
