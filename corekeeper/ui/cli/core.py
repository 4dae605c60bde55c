"""
CLI commands for the core process — run in the foreground, status.

Thin wrappers over ``corekeeper.core.use_cases.core_control``.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from pathlib import Path

import click

from corekeeper.ui.cli.runtime import emit_json, get_runtime

logger = logging.getLogger(__name__)

# Seconds between status polls while supervising in the foreground
POLL_INTERVAL = 1.0


@click.group()
def core() -> None:
    """Core process — run, status."""


def _echo_core_output(runtime) -> None:  # type: ignore[no-untyped-def]
    """Print core:log events as they arrive (daemon thread).

    The bus ends a subscription that falls too far behind; the echo then
    resubscribes after the last printed line and the bus replays the gap.
    """
    from corekeeper.core.services.event_bus import CORE_LOG

    since = 0
    while True:
        for event in runtime.bus.subscribe(since=since, heartbeat_interval=3600):
            if event["type"] != CORE_LOG:
                continue
            since = event["seq"]
            data = event["data"]
            click.echo(data["line"], err=data["stream"] == "stderr")
        logger.warning("Core output echo fell behind; resuming after event %d", since)


@core.command()
@click.argument("config", type=click.Path(path_type=Path), required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(ctx: click.Context, config: Path | None, as_json: bool) -> None:
    """Start the core and supervise it until Ctrl-C or exit.

    CONFIG defaults to ``core_config`` from corekeeper.yml.
    """
    from corekeeper.core.services.core_process.manager import CoreStatus
    from corekeeper.core.use_cases.core_control import core_status, start_core, stop_core

    runtime = get_runtime(ctx)

    if not as_json:
        threading.Thread(
            target=_echo_core_output, args=(runtime,), name="core-echo", daemon=True,
        ).start()

    result = start_core(runtime, config)
    if result.error:
        if as_json:
            emit_json(result.to_dict(), ok=False)
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not as_json:
        click.secho(f"▶ Core running (pid {result.pid})", fg="green", bold=True)
        click.echo(f"   Binary: {result.core_path}")
        click.echo(f"   Config: {result.config}")
        click.echo("   Press Ctrl-C to stop.")

    try:
        while core_status(runtime).status is CoreStatus.RUNNING:
            time.sleep(POLL_INTERVAL)
        final = core_status(runtime)
        final.action = "exited"
    except KeyboardInterrupt:
        final = stop_core(runtime)

    if as_json:
        emit_json(final.to_dict(), ok=final.error is None)
        return

    if final.error:
        click.secho(f"❌ {final.error}", fg="red")
        sys.exit(1)
    click.secho(f"⏹  Core {final.status}", fg="yellow")


@core.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show core status and the configured binary."""
    from corekeeper.core.use_cases.core_control import core_status
    from corekeeper.core.use_cases.core_update import install_info

    runtime = get_runtime(ctx)
    result = core_status(runtime)
    info = install_info(runtime)

    if as_json:
        payload = result.to_dict()
        payload["current_version"] = info.current_version
        emit_json(payload)
        return

    colors = {"running": "green", "stopped": "yellow", "error": "red"}
    click.secho(f"Core: {result.status}", fg=colors.get(str(result.status), "white"), bold=True)
    click.echo(f"   Binary:  {result.core_path or '(not installed)'}")
    click.echo(f"   Version: {info.current_version or '-'}")
