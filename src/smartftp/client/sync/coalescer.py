"""Debouncing of local change events into upload intents.

This module provides:
- ChangeCoalescer: Collapses bursts of file events per path

A created or modified file starts (or restarts) a per-path timer; the
file is queued for upload only once no further event arrived for it
during the debounce delay. An explicit save bypasses the delay and
cancels the pending timer so the file is queued exactly once.

Deletions are not debounced or queued: they are forwarded to the
session as best-effort remote deletes.

All methods must be called from the event loop thread. The file watcher
hands its events over with ``loop.call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from smartftp.client.background import BackgroundTasks
from smartftp.client.sync.ignore import IgnorePatterns
from smartftp.client.sync.paths import is_in_workspace, to_remote_path

if TYPE_CHECKING:
    from smartftp.client.session import ConnectionSession
    from smartftp.client.sync.queue import TransferQueue
    from smartftp.core.config import Configuration

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY = 1.0  # seconds


class ChangeCoalescer:
    """Per-path debounce of watcher events in front of the transfer queue."""

    def __init__(
        self,
        queue: TransferQueue,
        session: ConnectionSession,
        workspace_root: Path,
        config: Configuration | None = None,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
    ) -> None:
        """Initialize the coalescer.

        Args:
            queue: Queue receiving debounced upload intents.
            session: Session used for remote deletes.
            workspace_root: Local directory mapped to the remote root.
            config: Active configuration (None disables every handler).
            debounce_delay: Quiet period before a changed file is queued.
        """
        self._queue = queue
        self._session = session
        self._workspace_root = Path(workspace_root)
        self._debounce_delay = debounce_delay
        self._config: Configuration | None = None
        self._ignore = IgnorePatterns()
        self._timers: dict[Path, asyncio.TimerHandle] = {}
        self._background = BackgroundTasks("coalescer")
        self._active = True
        self.apply_config(config)

    @property
    def pending(self) -> set[Path]:
        """Get the paths with a debounce timer running."""
        return set(self._timers)

    def apply_config(self, config: Configuration | None) -> None:
        """Switch to a new configuration."""
        self._config = config
        self._ignore = IgnorePatterns(config.ignore if config else None)

    def _accepts(self, path: Path) -> bool:
        if not is_in_workspace(path, self._workspace_root):
            return False
        return not self._ignore.should_ignore(path, self._workspace_root)

    def on_created(self, path: Path) -> None:
        """Handle a file creation event."""
        config = self._config
        if not self._active:
            return
        if config is None or not config.watcher.auto_upload or config.watcher.ignore_create:
            return
        logger.info("File created: %s", path)
        self._debounce(Path(path))

    def on_modified(self, path: Path) -> None:
        """Handle a file modification event."""
        config = self._config
        if not self._active:
            return
        if config is None or not config.watcher.auto_upload or config.watcher.ignore_update:
            return
        logger.info("File changed: %s", path)
        self._debounce(Path(path))

    def on_saved(self, path: Path) -> None:
        """Handle an explicit save: queue immediately, dropping any pending timer."""
        config = self._config
        path = Path(path)
        if not self._active:
            return
        if config is None or not config.upload_on_save:
            return
        if not self._accepts(path):
            return

        logger.info("File saved: %s", path)
        handle = self._timers.pop(path, None)
        if handle is not None:
            handle.cancel()
            logger.info("Cleared debounced upload for %s due to save event", path)
        self._queue.enqueue(path)

    def on_deleted(self, path: Path, is_directory: bool = False) -> None:
        """Handle a file or directory deletion by deleting the remote counterpart."""
        config = self._config
        if not self._active:
            return
        if config is None or not config.watcher.auto_delete or config.watcher.ignore_delete:
            return
        path = Path(path)
        if not self._accepts(path):
            return

        # A pending upload of a deleted file would only fail
        handle = self._timers.pop(path, None)
        if handle is not None:
            handle.cancel()

        remote_path = to_remote_path(path, self._workspace_root, config.remote_path)
        what = "directory" if is_directory else "file"
        logger.info("%s deleted locally, deleting remote %s", path, remote_path)
        self._background.spawn(
            self._delete_remote(remote_path, is_directory),
            name=f"delete {what} {remote_path}",
        )

    async def _delete_remote(self, remote_path: str, is_directory: bool) -> None:
        if is_directory:
            ok = await self._session.delete_directory(remote_path)
        else:
            ok = await self._session.delete_file(remote_path)
        if not ok:
            logger.warning("Auto-delete failed for remote path: %s", remote_path)

    def _debounce(self, path: Path) -> None:
        if not self._accepts(path):
            return

        existing = self._timers.pop(path, None)
        if existing is not None:
            existing.cancel()

        loop = asyncio.get_running_loop()
        self._timers[path] = loop.call_later(self._debounce_delay, self._fire, path)

    def _fire(self, path: Path) -> None:
        self._timers.pop(path, None)
        logger.info("Triggering debounced upload for: %s", path)
        self._queue.enqueue(path)

    async def wait(self) -> None:
        """Wait for pending remote deletes to finish."""
        await self._background.wait()

    def start(self) -> None:
        """Accept events again after stop."""
        self._active = True

    def stop(self) -> None:
        """Cancel every pending timer without firing it and ignore later events."""
        self._active = False
        for handle in self._timers.values():
            handle.cancel()
        if self._timers:
            logger.debug("Cancelled %d pending uploads", len(self._timers))
        self._timers.clear()
