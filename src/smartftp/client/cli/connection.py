"""Connection command for the smartftp CLI.

Commands:
- connect: Connect to the configured server and verify the remote path
"""

from __future__ import annotations

import asyncio
import sys

import click

from smartftp.client.cli.config import get_workspace, require_config
from smartftp.client.service import SyncService


@click.command()
@click.pass_context
def connect(ctx: click.Context) -> None:
    """Connect to the server and verify the remote directory is listable."""
    workspace = get_workspace(ctx)
    config = require_config(workspace)
    service = SyncService(workspace, config)

    async def run() -> bool:
        try:
            return await service.connect()
        finally:
            await service.stop()

    click.echo(f"Connecting to {config.host}:{config.port} ({config.protocol.value})...")
    connected = asyncio.run(run())
    if not connected:
        click.echo(f"Error: {service.status_board.render()}", err=True)
        sys.exit(1)
    click.echo(f"Connected to {config.display_name}, remote path {config.remote_path} is reachable.")
