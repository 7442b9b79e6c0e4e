"""Top-level sync service wiring the components together.

This module provides:
- SyncService: Owns the session, queue, coalescer, engine and watcher

Architecture:
    ConfigWatcher ─► SyncService.apply_config ─► every component
    FileWatcher ─► ChangeCoalescer ─► TransferQueue ─► ConnectionSession
    commands (CLI) ─► SyncService ─► TreeSyncEngine ─► ConnectionSession

Each component is constructed here and receives its collaborators
explicitly; there is no module level state.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from smartftp.client.background import BackgroundTasks
from smartftp.client.session import DEFAULT_RECONNECT_DELAY, ConnectionSession
from smartftp.client.status import (
    LoggingStatusListener,
    StatusBoard,
    StatusBroadcaster,
    StatusListener,
)
from smartftp.client.sync.coalescer import DEFAULT_DEBOUNCE_DELAY, ChangeCoalescer
from smartftp.client.sync.engine import TreeSyncEngine
from smartftp.client.sync.ignore import IgnorePatterns
from smartftp.client.sync.paths import is_in_workspace, to_remote_path
from smartftp.client.sync.queue import DEFAULT_RETRY_DELAY, TransferQueue
from smartftp.client.sync.watcher import FileWatcher
from smartftp.client.transport import create_transport
from smartftp.core.config import CONFIG_FILENAME
from smartftp.core.errors import ConfigError, SyncError

if TYPE_CHECKING:
    from smartftp.client.sync.types import SyncReport
    from smartftp.client.transport import Transport
    from smartftp.core.config import Configuration

logger = logging.getLogger(__name__)


class SyncService:
    """Keeps a workspace synchronized with its remote directory.

    Usage:
        service = SyncService(workspace_root, config)
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        workspace_root: Path,
        config: Configuration | None = None,
        listeners: list[StatusListener] | None = None,
        transport_factory: Callable[[Configuration], Transport] = create_transport,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the service.

        Args:
            workspace_root: Local directory mapped to the remote root.
            config: Initial configuration (None until one is loaded).
            listeners: Extra status listeners. A StatusBoard and a
                LoggingStatusListener are always registered.
            transport_factory: Creates transports (replaced in tests).
            reconnect_delay: Seconds between reconnect attempts.
            debounce_delay: Quiet period before a changed file is queued.
            retry_delay: Seconds before a failed upload is retried.
        """
        self._workspace_root = Path(workspace_root).absolute()
        self._config = config

        self.status_board = StatusBoard()
        self._status = StatusBroadcaster([self.status_board, LoggingStatusListener()])
        for listener in listeners or []:
            self._status.add_listener(listener)

        self.session = ConnectionSession(
            config,
            transport_factory=transport_factory,
            status=self._status,
            reconnect_delay=reconnect_delay,
        )
        self.queue = TransferQueue(
            self.session,
            self._workspace_root,
            config,
            status=self._status,
            retry_delay=retry_delay,
        )
        self.coalescer = ChangeCoalescer(
            self.queue,
            self.session,
            self._workspace_root,
            config,
            debounce_delay=debounce_delay,
        )
        self.engine = TreeSyncEngine(self.session, self._workspace_root, config, status=self._status)

        self._watcher: FileWatcher | None = None
        # Watching survives configuration changes once requested
        self._watch_requested = False
        self._background = BackgroundTasks("service")

    @property
    def workspace_root(self) -> Path:
        """Get the workspace root."""
        return self._workspace_root

    @property
    def config(self) -> Configuration | None:
        """Get the active configuration."""
        return self._config

    @property
    def is_watching(self) -> bool:
        """True while the file watcher is running."""
        return self._watcher is not None and self._watcher.is_running

    def _require_config(self) -> Configuration:
        if self._config is None:
            raise ConfigError("No configuration found. Run 'smartftp init' to create one.")
        return self._config

    async def apply_config(self, config: Configuration | None) -> None:
        """Push a new configuration into every component.

        None pauses the watcher and disconnects. Otherwise a requested
        watcher is restarted with the new settings and a connection is
        started if there is none.
        """
        self._config = config

        self.queue.apply_config(config)
        self.coalescer.apply_config(config)
        self.engine.apply_config(config)
        await self.session.apply_config(config)

        if config is None:
            logger.info("Configuration removed or became invalid")
            self._stop_observer()
            return

        logger.info("Configuration updated/loaded: %s", config.display_name)
        if self._watch_requested:
            self._stop_observer()
            self._start_observer()
        if not self.session.is_connected:
            self.session.request_connect()

    def on_config_changed(self, config: Configuration | None) -> None:
        """ConfigWatcher callback; applies the configuration in the background."""
        self._background.spawn(self.apply_config(config), name="apply_config")

    async def start(self, watch: bool = True) -> bool:
        """Connect and optionally start watching the workspace.

        Without a configuration nothing happens until one is applied; a
        requested watcher then starts with it.

        Returns:
            True if the connection was established.
        """
        if watch:
            self._watch_requested = True
        if self._config is None:
            logger.info("No configuration loaded, waiting for %s", CONFIG_FILENAME)
            return False
        connected = await self.session.connect()
        if watch:
            self._start_observer()
        return connected

    async def stop(self) -> None:
        """Stop watching, cancel pending work and disconnect."""
        self.stop_watcher()
        self.queue.close()
        self._background.cancel_all()
        await self.session.close()

    async def connect(self) -> bool:
        """Connect to the configured server."""
        self._require_config()
        return await self.session.connect()

    async def disconnect(self) -> None:
        """Disconnect from the server."""
        await self.session.disconnect()

    def upload_file(self, local_path: Path) -> bool:
        """Queue one file for upload.

        Raises:
            SyncError: If the file is outside the workspace.
        """
        self._require_config()
        local_path = Path(local_path).absolute()
        if not is_in_workspace(local_path, self._workspace_root):
            raise SyncError(f"File must be within the workspace: {local_path}")
        return self.queue.enqueue(local_path)

    def upload_workspace(self) -> int:
        """Queue every non-ignored file of the workspace.

        Returns:
            Number of files queued.
        """
        config = self._require_config()
        ignore = IgnorePatterns(config.ignore)
        count = 0
        for dirpath, dirnames, filenames in os.walk(self._workspace_root):
            current = Path(dirpath)
            # Do not descend into ignored directories
            dirnames[:] = sorted(
                d for d in dirnames if not ignore.should_ignore(current / d, self._workspace_root)
            )
            for name in sorted(filenames):
                path = current / name
                if ignore.should_ignore(path, self._workspace_root):
                    continue
                if self.queue.enqueue(path):
                    count += 1
        logger.info("%d files queued for upload", count)
        return count

    def _remote_dir_for(self, local_dir: Path) -> tuple[Path, str]:
        config = self._require_config()
        local_dir = Path(local_dir).absolute()
        if not is_in_workspace(local_dir, self._workspace_root):
            raise SyncError(f"Selected folder must be within the current workspace: {local_dir}")
        if local_dir.exists() and not local_dir.is_dir():
            raise SyncError(f"Not a directory: {local_dir}")
        return local_dir, to_remote_path(local_dir, self._workspace_root, config.remote_path)

    async def sync_folder(self, local_dir: Path) -> SyncReport:
        """Sync a workspace folder from its remote counterpart.

        Raises:
            ConfigError: If no configuration is loaded.
            SyncError: If the folder is outside the workspace.
        """
        local_dir, remote_dir = self._remote_dir_for(local_dir)
        logger.info("Starting sync from server: %s to local: %s", remote_dir, local_dir)
        return await self.engine.sync(local_dir, remote_dir)

    async def download_folder(self, local_dir: Path) -> SyncReport:
        """Download a workspace folder from its remote counterpart, overwriting local files."""
        local_dir, remote_dir = self._remote_dir_for(local_dir)
        logger.info("Starting download from server: %s to local: %s", remote_dir, local_dir)
        return await self.engine.download(local_dir, remote_dir)

    def notify_saved(self, local_path: Path) -> None:
        """Report an explicit save of a file (uploads immediately)."""
        self.coalescer.on_saved(Path(local_path).absolute())

    def start_watcher(self) -> bool:
        """Start the file watcher.

        Once started, the watcher follows configuration changes until
        stop_watcher is called.

        Returns:
            True if the watcher is running afterwards.
        """
        self._watch_requested = True
        return self._start_observer()

    def stop_watcher(self) -> None:
        """Stop the file watcher and drop pending debounced uploads."""
        self._watch_requested = False
        self._stop_observer()

    def _start_observer(self) -> bool:
        if self.is_watching:
            return True
        config = self._config
        if config is None:
            logger.warning("No configuration, file watcher not started")
            return False
        if not config.watcher.auto_upload and not config.upload_on_save:
            logger.info("File watching disabled (autoUpload and uploadOnSave are false)")
            return False

        self.coalescer.start()
        self._watcher = FileWatcher(
            self._workspace_root,
            self.coalescer,
            asyncio.get_running_loop(),
            files=config.watcher.files,
        )
        self._watcher.start()
        return True

    def _stop_observer(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self.coalescer.stop()

    def toggle_watcher(self) -> bool:
        """Start the watcher if stopped, stop it if running.

        Returns:
            True if the watcher is running afterwards.
        """
        if self.is_watching:
            self.stop_watcher()
            logger.info("File watcher stopped")
            return False
        started = self.start_watcher()
        if started:
            logger.info("File watcher started")
        return started

    async def wait_idle(self) -> None:
        """Wait until background uploads, deletes and config updates settle."""
        await self._background.wait()
        await self.session.wait_idle()
        await self.coalescer.wait()
        await self.queue.wait()
