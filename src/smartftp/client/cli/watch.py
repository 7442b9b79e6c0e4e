"""Watch command for the smartftp CLI.

Commands:
- watch: Upload changed files continuously until interrupted
"""

from __future__ import annotations

import asyncio
import contextlib

import click

from smartftp.client.cli.config import get_workspace
from smartftp.client.config_watcher import ConfigWatcher
from smartftp.client.service import SyncService

STATUS_INTERVAL = 30.0  # seconds between status lines


async def watch_workspace(service: SyncService, config_watcher: ConfigWatcher) -> None:
    """Run the watcher and the config hot reload until cancelled."""
    config_watcher.add_callback(service.on_config_changed)
    config_watcher.start(asyncio.get_running_loop())
    try:
        await service.start(watch=True)
        while True:
            await asyncio.sleep(STATUS_INTERVAL)
            click.echo(f"[{service.status_board.render()}] {len(service.queue)} queued")
    finally:
        config_watcher.stop()
        await service.stop()


@click.command()
@click.pass_context
def watch(ctx: click.Context) -> None:
    """Watch the workspace and upload changes as they happen.

    Also reloads smartftp.json when it changes. Press Ctrl+C to stop.
    """
    workspace = get_workspace(ctx)
    config_watcher = ConfigWatcher(workspace)
    config = config_watcher.load()
    if config is None:
        click.echo("No valid smartftp.json yet, waiting for one to be created...")

    service = SyncService(workspace, config)
    click.echo(f"Watching {workspace}. Press Ctrl+C to stop.")
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(watch_workspace(service, config_watcher))
    click.echo("\nStopped watching.")
