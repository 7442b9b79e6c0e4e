"""Remote to local tree synchronization.

This module provides:
- decide: Pure per-item comparison of a remote entry with its local copy
- TreeSyncEngine: Recursive walk of a remote subtree issuing downloads

Sync walks the remote tree depth-first and downloads files that are
missing locally, newer on the server (beyond a 2 second tolerance) or
of a different size. Download walks the same tree and fetches every
file unconditionally. Both hold the session's exclusivity flag for
their whole duration, so queued uploads wait until they finish.

Nothing is ever deleted locally and nothing is uploaded. A run that
aborts half way (connection loss, unwritable local directory) leaves
the files it already transferred in place.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from smartftp.client.session import ErrorClass
from smartftp.client.status import StatusListener
from smartftp.client.sync.ignore import IgnorePatterns
from smartftp.client.sync.paths import remote_join
from smartftp.client.sync.types import (
    LocalEntry,
    SyncAction,
    SyncDecision,
    SyncReport,
    SyncStatus,
)
from smartftp.core.errors import NotConnectedError, SessionBusyError, SmartFTPError
from smartftp.core.types import OperationKind

if TYPE_CHECKING:
    from smartftp.client.session import ConnectionSession
    from smartftp.client.transport import RemoteEntry
    from smartftp.core.config import Configuration

logger = logging.getLogger(__name__)

MTIME_TOLERANCE = 2.0  # seconds


def decide(
    name: str,
    remote: RemoteEntry,
    local: LocalEntry | None,
    tolerance: float = MTIME_TOLERANCE,
) -> SyncDecision:
    """Decide what to do with one remote entry.

    Args:
        name: Entry name.
        remote: The remote entry.
        local: The local entry of the same name, if any.
        tolerance: Seconds a remote file may be newer and still count as
            unchanged.

    Returns:
        The decision with the reason behind it.
    """
    if remote.is_directory:
        if local is None or not local.is_directory:
            return SyncDecision(name, SyncAction.CREATE_LOCAL_DIR, "Local directory missing")
        return SyncDecision(name, SyncAction.SKIP, "Local directory exists")

    if local is None:
        return SyncDecision(name, SyncAction.DOWNLOAD_FILE, "Local file missing")

    if local.is_directory:
        return SyncDecision(name, SyncAction.SKIP, "Local item is a directory, remote is a file")

    if remote.modified_at is None:
        return SyncDecision(name, SyncAction.DOWNLOAD_FILE, "Remote mtime missing")

    if remote.modified_at > local.modified_at + tolerance:
        return SyncDecision(
            name,
            SyncAction.DOWNLOAD_FILE,
            f"Remote file newer ({remote.modified_at:.0f} > {local.modified_at:.0f})",
        )

    if remote.size is not None and remote.size != local.size:
        return SyncDecision(
            name,
            SyncAction.DOWNLOAD_FILE,
            f"File sizes differ (remote: {remote.size}, local: {local.size})",
        )

    return SyncDecision(name, SyncAction.SKIP, "Local file is up to date or newer")


class TreeSyncEngine:
    """Walks remote directories and brings their local counterparts up to date.

    Usage:
        engine = TreeSyncEngine(session, workspace_root, config)
        report = await engine.sync(workspace_root / "www", "/var/www")
        print(report.summary())
    """

    def __init__(
        self,
        session: ConnectionSession,
        workspace_root: Path,
        config: Configuration | None = None,
        status: StatusListener | None = None,
    ) -> None:
        self._session = session
        self._workspace_root = Path(workspace_root)
        self._status = status or StatusListener()
        self._ignore = IgnorePatterns()
        self.apply_config(config)

    def apply_config(self, config: Configuration | None) -> None:
        """Switch to a new configuration."""
        self._ignore = IgnorePatterns(config.ignore if config else None)

    async def sync(self, local_dir: Path, remote_dir: str) -> SyncReport:
        """Download new and changed remote files below ``remote_dir``.

        Args:
            local_dir: Local directory receiving the files.
            remote_dir: Remote directory to walk.

        Returns:
            Report of what was done. Its status is BUSY when another sync
            or download is running.
        """
        return await self._run(OperationKind.SYNC, Path(local_dir), remote_dir, force=False)

    async def download(self, local_dir: Path, remote_dir: str) -> SyncReport:
        """Download every remote file below ``remote_dir``, overwriting local copies."""
        return await self._run(OperationKind.DOWNLOAD, Path(local_dir), remote_dir, force=True)

    async def _run(
        self,
        kind: OperationKind,
        local_dir: Path,
        remote_dir: str,
        force: bool,
    ) -> SyncReport:
        verb = "Sync" if kind is OperationKind.SYNC else "Download"
        label = local_dir.name or str(local_dir)
        report = SyncReport()

        busy = self._session.exclusive_operation
        if busy is not None:
            logger.warning("%s already in progress, skipping new %s request", busy, kind.value)
            report.status = SyncStatus.BUSY
            report.error = f"{busy} already in progress"
            return report

        if not await self._session.ensure_connected(kind.value):
            report.status = SyncStatus.NOT_CONNECTED
            report.error = "Connection failed"
            self._status.operation_failed(kind, f"{verb} failed: {label}", report.error)
            return report

        try:
            async with self._session.exclusive(kind.value):
                logger.info("Starting %s: Remote %s -> Local %s", kind.value, remote_dir, local_dir)
                self._status.operation_started(kind, f"{verb}ing {label}...")
                try:
                    await self._walk(kind, local_dir, remote_dir, report, force)
                except (SmartFTPError, OSError, EOFError) as e:
                    logger.error("%s failed for %s: %s", verb, local_dir, e)
                    report.status = SyncStatus.FAILED
                    report.error = str(e)
                    self._status.operation_failed(kind, f"{verb} failed: {label}", str(e))
                else:
                    logger.info("%s completed for %s: %s", verb, local_dir, report.summary())
                    self._status.operation_succeeded(kind, f"{verb}ed {label}")
        except SessionBusyError as e:
            report.status = SyncStatus.BUSY
            report.error = str(e)

        return report

    def _check_connected(self, kind: OperationKind) -> None:
        if not self._session.is_connected:
            raise NotConnectedError(f"Connection lost during {kind.value}")

    async def _walk(
        self,
        kind: OperationKind,
        local_dir: Path,
        remote_dir: str,
        report: SyncReport,
        force: bool,
    ) -> None:
        self._check_connected(kind)
        logger.debug("Processing remote directory %s", remote_dir)

        try:
            remote_entries = await self._session.transport.list(remote_dir)
        except (SmartFTPError, OSError, EOFError) as e:
            error_class = self._session.handle_error(e, f"list remote directory {remote_dir}")
            if error_class is ErrorClass.BENIGN:
                logger.warning("Remote directory not found, skipping: %s", remote_dir)
                return
            raise

        # Failure here aborts the run
        local_dir.mkdir(parents=True, exist_ok=True)
        local_entries = self._scan_local(local_dir)

        for entry in remote_entries:
            self._check_connected(kind)
            if entry.name in (".", ".."):
                continue

            local_path = local_dir / entry.name
            remote_path = remote_join(remote_dir, entry.name)
            if self._ignore.should_ignore(local_path, self._workspace_root):
                logger.debug("Ignoring %s", remote_path)
                continue

            if not entry.is_directory and not entry.is_file:
                logger.warning("Skipping unknown remote item type: %s", remote_path)
                continue

            local = local_entries.get(entry.name)
            if force and entry.is_file:
                if local is not None and local.is_directory:
                    decision = SyncDecision(
                        entry.name, SyncAction.SKIP, "Local item is a directory, remote is a file"
                    )
                else:
                    decision = SyncDecision(entry.name, SyncAction.DOWNLOAD_FILE, "Full download")
            else:
                decision = decide(entry.name, entry, local)
            report.decisions.append(decision)

            if decision.action is SyncAction.CREATE_LOCAL_DIR:
                logger.info("Creating local directory: %s", local_path)
                try:
                    local_path.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    logger.error("Failed to create local directory %s: %s", local_path, e)
                    report.errors.append(f"{local_path}: {e}")
                    continue
                report.created_dirs.append(str(local_path))

            if entry.is_directory:
                await self._walk(kind, local_path, remote_path, report, force)
            elif decision.action is SyncAction.DOWNLOAD_FILE:
                logger.info("Downloading %s -> %s. Reason: %s", remote_path, local_path, decision.reason)
                await self._download(kind, local_path, remote_path, report)
            else:
                if local is not None and local.is_directory:
                    logger.warning("%s: %s", decision.reason, local_path)
                else:
                    logger.debug("Up to date: %s", local_path)
                report.skipped.append(remote_path)

    def _scan_local(self, local_dir: Path) -> dict[str, LocalEntry]:
        entries: dict[str, LocalEntry] = {}
        for child in local_dir.iterdir():
            if self._ignore.should_ignore(child, self._workspace_root):
                continue
            try:
                st = child.stat()
            except OSError as e:
                logger.warning("Could not stat local item, skipping: %s. Error: %s", child, e)
                continue
            entries[child.name] = LocalEntry(
                is_directory=child.is_dir(),
                modified_at=st.st_mtime,
                size=st.st_size,
            )
        return entries

    async def _download(
        self,
        kind: OperationKind,
        local_path: Path,
        remote_path: str,
        report: SyncReport,
    ) -> None:
        self._status.operation_started(kind, f"Downloading {local_path.name}")
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            self._check_connected(kind)
            await self._session.transport.download_to(local_path, remote_path)
        except (SmartFTPError, OSError, EOFError) as e:
            self._session.handle_error(e, f"download {remote_path} during {kind.value}")
            logger.error("Failed to download %s. Skipping file.", remote_path)
            report.errors.append(f"{remote_path}: {e}")
            return

        logger.info("Downloaded %s to %s", remote_path, local_path)
        report.downloaded.append(remote_path)
