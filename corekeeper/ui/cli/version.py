"""
CLI commands for core versions — check, plan, install, path, list.

Thin wrappers over ``corekeeper.core.use_cases.core_update``.
"""

from __future__ import annotations

import sys

import click

from corekeeper.ui.cli.runtime import emit_json, get_runtime

_CHANNEL_OPTION = click.option(
    "--channel",
    type=click.Choice(["stable", "dev"], case_sensitive=False),
    default=None,
    help="Release channel (default: settings default_channel).",
)


def _channel(ctx: click.Context, channel: str | None) -> str:
    if channel:
        return channel.lower()
    return str(get_runtime(ctx).settings.default_channel)


@click.group()
def version() -> None:
    """Core versions — check, plan, install, path, list."""


@version.command()
@_CHANNEL_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, channel: str | None, as_json: bool) -> None:
    """Show the newest release on a channel."""
    from corekeeper.core.use_cases.core_update import check_latest, install_info

    runtime = get_runtime(ctx)
    result = check_latest(runtime, _channel(ctx, channel))

    if as_json:
        emit_json(result.to_dict(), ok=result.error is None)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    info = result.info
    assert info is not None  # guaranteed after error check above
    installed = install_info(runtime).current_version

    click.secho(f"📦 Latest {info.channel}: {info.version}", fg="cyan", bold=True)
    if info.release_date:
        click.echo(f"   Published: {info.release_date}")
    if info.download_url:
        click.echo(f"   Artifact:  {info.download_url}")
    if installed == info.version:
        click.secho("   ✅ Installed and current", fg="green")
    elif installed:
        click.secho(f"   ⬆️  Update available (installed: {installed})", fg="yellow")
    else:
        click.secho("   No core installed yet", fg="yellow")


@version.command()
@_CHANNEL_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, channel: str | None, as_json: bool) -> None:
    """Show which artifact an install would download."""
    from corekeeper.core.use_cases.core_update import plan_download

    result = plan_download(get_runtime(ctx), _channel(ctx, channel))

    if as_json:
        emit_json(result.to_dict(), ok=result.error is None)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    p = result.plan
    assert p is not None
    click.secho(f"📋 Version {p.version}", fg="cyan", bold=True)
    click.echo(f"   Asset:    {p.asset_name}")
    click.echo(f"   URL:      {p.asset_url}")
    click.echo(f"   Checksum: {p.checksum_url or '(none published)'}")


@version.command()
@_CHANNEL_OPTION
@click.option("--restart", is_flag=True, help="Restart a running core on the new binary.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(ctx: click.Context, channel: str | None, restart: bool, as_json: bool) -> None:
    """Download, verify and install the newest release."""
    from corekeeper.core.use_cases.core_update import install_latest

    runtime = get_runtime(ctx)
    ch = _channel(ctx, channel)

    show = not as_json and not ctx.obj.get("quiet")
    if show:
        click.secho(f"⬇️  Installing latest {ch} core...", fg="cyan")

    shown = {"stage": ""}

    def render(stage: str, progress: int, message: str) -> None:
        if not show or stage == "error":
            return
        if stage != shown["stage"] or progress % 10 == 0:
            shown["stage"] = stage
            click.echo(f"   [{progress:3d}%] {message}")

    result = install_latest(runtime, ch, restart=restart, on_progress=render)

    if as_json:
        emit_json(result.to_dict(), ok=result.error is None)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Installed {result.version}", fg="green", bold=True)
    click.echo(f"   {result.core_path}")


@version.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def path(ctx: click.Context, as_json: bool) -> None:
    """Show the cores directory and the default core path."""
    from corekeeper.core.use_cases.core_update import install_info

    info = install_info(get_runtime(ctx))

    if as_json:
        emit_json(info.to_dict())
        return

    click.echo(f"Install dir: {info.install_dir}")
    if info.default_core_path:
        click.echo(f"Core:        {info.default_core_path}")
    else:
        click.secho("Core:        (not installed)", fg="yellow")


@version.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_versions(ctx: click.Context, as_json: bool) -> None:
    """List installed core versions."""
    from corekeeper.core.use_cases.core_update import install_info

    info = install_info(get_runtime(ctx))

    if as_json:
        emit_json(info.to_dict())
        return

    if not info.installed_versions:
        click.secho("No core versions installed", fg="yellow")
        return

    for name in info.installed_versions:
        marker = " ← current" if name == info.current_version else ""
        click.echo(f"  • {name}{marker}")
