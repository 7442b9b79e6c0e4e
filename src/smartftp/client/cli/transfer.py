"""Transfer commands for the smartftp CLI.

Commands:
- upload: Upload files to the server
- upload-workspace: Upload every non-ignored file of the workspace
- sync: Download new and changed remote files into a folder
- download: Download a remote folder, overwriting local files
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar

import click

from smartftp.client.cli.config import get_workspace, require_config
from smartftp.client.service import SyncService
from smartftp.client.sync.types import SyncReport
from smartftp.core.errors import SmartFTPError

logger = logging.getLogger(__name__)

T = TypeVar("T")

POLL_INTERVAL = 0.5


async def wait_for_uploads(service: SyncService, timeout: float) -> bool:
    """Wait until the upload queue is empty.

    Reconnects scheduled after a lost connection are waited for, up to
    ``timeout`` seconds in total.

    Returns:
        True if every queued file was processed.
    """

    async def drained() -> None:
        while True:
            await service.wait_idle()
            if not len(service.queue):
                return
            session = service.session
            if not (session.reconnect_pending or session.is_connecting or session.is_connected):
                return
            if session.is_connected:
                service.queue.schedule_drain()
            await asyncio.sleep(POLL_INTERVAL)

    try:
        await asyncio.wait_for(drained(), timeout)
    except asyncio.TimeoutError:
        logger.warning("Timed out with %d uploads pending", len(service.queue))
    return not len(service.queue)


def run_connected(
    ctx: click.Context,
    action: Callable[[SyncService], Awaitable[T]],
) -> tuple[SyncService, T]:
    """Connect, run ``action`` and disconnect, exiting on any failure."""
    workspace = get_workspace(ctx)
    config = require_config(workspace)
    service = SyncService(workspace, config)

    async def run() -> T:
        try:
            if not await service.connect():
                raise SmartFTPError(f"Cannot connect to {config.host}: {service.status_board.render()}")
            return await action(service)
        finally:
            await service.stop()

    try:
        result = asyncio.run(run())
    except SmartFTPError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return service, result


def report_uploads(service: SyncService, queued: int, complete: bool) -> None:
    """Print the upload summary and exit 1 if anything failed."""
    stats = service.queue.stats
    click.echo(f"Uploaded {stats.uploaded} of {queued} files.")
    if stats.failed or not complete:
        pending = len(service.queue)
        click.echo(f"Error: {stats.failed} failed, {pending} not uploaded.", err=True)
        sys.exit(1)


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--timeout", default=300.0, show_default=True, help="Seconds to wait for uploads to finish.")
@click.pass_context
def upload(ctx: click.Context, paths: tuple[Path, ...], timeout: float) -> None:
    """Upload files to the server."""

    async def action(service: SyncService) -> tuple[int, bool]:
        queued = 0
        for path in paths:
            if service.upload_file(path):
                queued += 1
            else:
                click.echo(f"Skipped: {path}")
        return queued, await wait_for_uploads(service, timeout)

    service, (queued, complete) = run_connected(ctx, action)
    report_uploads(service, queued, complete)


@click.command("upload-workspace")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.option("--timeout", default=3600.0, show_default=True, help="Seconds to wait for uploads to finish.")
@click.pass_context
def upload_workspace(ctx: click.Context, yes: bool, timeout: float) -> None:
    """Upload every non-ignored file of the workspace."""
    if not yes:
        click.confirm("This will upload all files in the workspace. Continue?", abort=True)

    async def action(service: SyncService) -> tuple[int, bool]:
        queued = service.upload_workspace()
        click.echo(f"{queued} files queued for upload")
        return queued, await wait_for_uploads(service, timeout)

    service, (queued, complete) = run_connected(ctx, action)
    report_uploads(service, queued, complete)


def workspace_folder(ctx: click.Context, folder: Path) -> Path:
    """Resolve a relative FOLDER against the workspace root."""
    return folder if folder.is_absolute() else get_workspace(ctx) / folder


def report_sync(verb: str, report: SyncReport) -> None:
    """Print a sync or download report and exit 1 unless it completed."""
    for path in report.downloaded:
        click.echo(f"  ↓ {path}")
    for error in report.errors:
        click.echo(f"  ✗ {error}", err=True)

    if not report.ok:
        click.echo(f"Error: {verb} {report.status.value}: {report.error}", err=True)
        sys.exit(1)
    click.echo(f"{verb} complete: {report.summary()}")


@click.command()
@click.argument("folder", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def sync(ctx: click.Context, folder: Path) -> None:
    """Download new and changed remote files into FOLDER.

    FOLDER must be inside the workspace; a relative FOLDER is taken
    relative to the workspace root. Its remote counterpart is derived from
    remotePath. Local files are never deleted.
    """
    folder = workspace_folder(ctx, folder)
    _, report = run_connected(ctx, lambda service: service.sync_folder(folder))
    report_sync("Sync", report)


@click.command()
@click.argument("folder", type=click.Path(file_okay=False, path_type=Path))
@click.pass_context
def download(ctx: click.Context, folder: Path) -> None:
    """Download every remote file into FOLDER, overwriting local copies."""
    folder = workspace_folder(ctx, folder)
    _, report = run_connected(ctx, lambda service: service.download_folder(folder))
    report_sync("Download", report)
