"""Command-line interface for smartftp.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Create a smartftp.json template
- connect: Connect to the server and verify the remote path
- upload: Upload files
- upload-workspace: Upload every non-ignored file of the workspace
- sync: Download new and changed remote files into a folder
- download: Download a remote folder, overwriting local files
- watch: Upload changes continuously
"""

from __future__ import annotations

from pathlib import Path

import click

from smartftp.client.cli.config import configure_logging, get_workspace, init, require_config
from smartftp.client.cli.connection import connect
from smartftp.client.cli.transfer import download, sync, upload, upload_workspace
from smartftp.client.cli.watch import watch


@click.group()
@click.version_option(package_name="smartftp")
@click.option(
    "--workspace",
    "-C",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Workspace root containing smartftp.json.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def cli(ctx: click.Context, workspace: Path, verbose: bool) -> None:
    """smartftp - Keep a local folder in sync with an FTP/SFTP server."""
    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    configure_logging(verbose)


# Configuration
cli.add_command(init)

# Connection
cli.add_command(connect)

# Transfers
cli.add_command(upload)
cli.add_command(upload_workspace)
cli.add_command(sync)
cli.add_command(download)

# Continuous mode
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "configure_logging",
    "get_workspace",
    "main",
    "require_config",
]
