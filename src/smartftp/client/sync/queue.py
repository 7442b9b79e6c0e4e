"""Upload queue with bounded retry and single-flight draining.

This module provides:
- TransferQueue: Ordered queue of pending uploads

Tasks are drained one at a time over the session's transport. A task
failing with a transient (connection) error while the transport is
still open is put back at the head of the queue, so files are uploaded
in the order they were queued even across reconnects. A persistently
failing file therefore holds back every file queued after it until its
retries are exhausted. A task whose error also closed the transport is
failed at once.

Draining is suspended while the session's exclusivity flag is held by
a sync or download; tasks enqueued meanwhile wait and are drained once
the flag is released.

Usage:
    queue = TransferQueue(session, workspace_root, config)
    queue.enqueue(workspace_root / "index.html")
    await queue.wait()
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING

from smartftp.client.background import BackgroundTasks
from smartftp.client.session import ErrorClass
from smartftp.client.status import StatusListener
from smartftp.client.sync.ignore import IgnorePatterns
from smartftp.client.sync.paths import is_in_workspace, remote_dirname, to_remote_path
from smartftp.client.sync.types import QueueStats, TransferTask
from smartftp.core.errors import LocalFileVanishedError, SmartFTPError

if TYPE_CHECKING:
    from smartftp.client.session import ConnectionSession
    from smartftp.core.config import Configuration

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 2.5  # seconds before retrying the same file


class TransferQueue:
    """FIFO upload queue drained over the session's transport.

    Attributes:
        stats: Upload counters since creation.
    """

    def __init__(
        self,
        session: ConnectionSession,
        workspace_root: Path,
        config: Configuration | None = None,
        status: StatusListener | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> None:
        """Initialize the queue.

        Args:
            session: Connection session used for uploads.
            workspace_root: Local directory mapped to the remote root.
            config: Active configuration (None until loaded).
            status: Listener for upload notifications.
            max_retries: Retries per task after the first attempt.
            retry_delay: Seconds to wait before retrying a task.
        """
        self._session = session
        self._workspace_root = Path(workspace_root)
        self._status = status or StatusListener()
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        self._config: Configuration | None = None
        self._ignore = IgnorePatterns()
        self._tasks: deque[TransferTask] = deque()
        self._draining = False
        self._background = BackgroundTasks("queue")
        self.stats = QueueStats()

        self.apply_config(config)
        session.add_connected_callback(self.schedule_drain)
        session.add_released_callback(self.schedule_drain)

    @property
    def pending(self) -> list[TransferTask]:
        """Get a snapshot of the queued tasks, head first."""
        return list(self._tasks)

    @property
    def is_draining(self) -> bool:
        """True while a drain is in progress."""
        return self._draining

    def __len__(self) -> int:
        return len(self._tasks)

    def apply_config(self, config: Configuration | None) -> None:
        """Switch to a new configuration. Queued tasks keep their remote paths."""
        self._config = config
        self._ignore = IgnorePatterns(config.ignore if config else None)

    def enqueue(self, local_path: Path, remote_path: str | None = None) -> bool:
        """Queue a local file for upload.

        Args:
            local_path: File inside the workspace.
            remote_path: Destination override; derived from the workspace
                mapping when omitted.

        Returns:
            True if the file is queued, False if it was rejected.
        """
        config = self._config
        if config is None:
            logger.error("No configuration found, cannot upload %s", local_path)
            return False

        local_path = Path(local_path)
        if not is_in_workspace(local_path, self._workspace_root):
            logger.debug("Not in workspace, skipping: %s", local_path)
            return False

        if self._ignore.should_ignore(local_path, self._workspace_root):
            logger.info("Ignoring file based on config: %s", local_path.name)
            return False

        if not local_path.is_file():
            logger.error("Local file does not exist: %s", local_path)
            return False

        if remote_path is None:
            remote_path = to_remote_path(local_path, self._workspace_root, config.remote_path)

        for task in self._tasks:
            if task.local_path == local_path:
                task.remote_path = remote_path
                logger.debug("Already queued: %s", local_path.name)
                break
        else:
            self._tasks.append(TransferTask(local_path=local_path, remote_path=remote_path))
            logger.info("Queued for upload: %s", local_path.name)

        if self._session.is_connected:
            self.schedule_drain()
        else:
            self._session.request_connect()
        return True

    def schedule_drain(self) -> None:
        """Start draining in the background if there is anything to do."""
        if not self._tasks or self._draining:
            return
        if self._session.exclusive_operation is not None:
            logger.debug(
                "Upload queue waiting for %s to finish (%d queued)",
                self._session.exclusive_operation,
                len(self._tasks),
            )
            return
        if not self._session.is_connected:
            return
        self._background.spawn(self.drain(), name="drain")

    async def wait(self) -> None:
        """Wait for background drains to finish."""
        await self._background.wait()

    def clear(self) -> None:
        """Drop every queued task."""
        if self._tasks:
            logger.info("Discarding %d queued uploads", len(self._tasks))
        self._tasks.clear()

    def close(self) -> None:
        """Cancel background drains."""
        self._background.cancel_all()

    async def drain(self) -> None:
        """Upload queued tasks until the queue is empty or draining must stop.

        Draining stops when the connection is lost or an exclusive
        operation takes over; it resumes on reconnect or release.
        """
        if self._draining or not self._tasks:
            return
        if self._session.exclusive_operation is not None:
            return

        self._draining = True
        try:
            while self._tasks:
                if self._session.exclusive_operation is not None:
                    logger.debug("Pausing uploads during %s", self._session.exclusive_operation)
                    break

                if not self._session.is_connected:
                    logger.warning("Connection lost during upload queue processing")
                    if not self._session.reconnect_pending:
                        self._session.request_connect()
                    break

                task = self._tasks.popleft()
                await self._process(task)
        finally:
            self._draining = False

        if not self._tasks:
            self._status.queue_idle()

    async def _process(self, task: TransferTask) -> None:
        """Attempt one upload, requeueing or failing the task on error."""
        try:
            await self._upload(task)
        except LocalFileVanishedError as e:
            logger.warning("%s, dropping", e)
            self.stats.dropped += 1
            return
        except (SmartFTPError, OSError, EOFError) as e:
            await self._handle_failure(task, e)
            return

        self.stats.uploaded += 1
        self._status.upload_succeeded(task.local_path, task.remote_path)

    async def _upload(self, task: TransferTask) -> None:
        """Upload one task's file.

        Raises:
            LocalFileVanishedError: If the local file is gone before or
                during the upload.
        """
        name = task.local_path.name
        if not task.local_path.exists():
            raise LocalFileVanishedError(f"Local file vanished before upload: {name}")

        self._status.upload_started(task.local_path)
        try:
            await self._session.ensure_remote_dir(remote_dirname(task.remote_path))
            logger.info("Uploading %s to %s", task.local_path, task.remote_path)
            await self._session.transport.upload_from(task.local_path, task.remote_path)
        except FileNotFoundError as e:
            if task.local_path.exists():
                raise
            raise LocalFileVanishedError(f"Local file vanished during upload: {name}") from e

    async def _handle_failure(self, task: TransferTask, error: Exception) -> None:
        name = task.local_path.name
        kind = self._session.handle_error(
            error, f"Upload attempt {task.retry_count + 1} for {name}"
        )

        # Only retried while the transport survived the error
        if (
            kind is ErrorClass.TRANSIENT
            and task.retry_count < self._max_retries
            and self._session.transport_open
        ):
            task.retry_count += 1
            self.stats.retried += 1
            self._tasks.appendleft(task)
            logger.warning("Retrying upload for %s (%d/%d)", name, task.retry_count, self._max_retries)
            await asyncio.sleep(self._retry_delay)
            return

        self.stats.failed += 1
        logger.error("Upload failed permanently for %s: %s", name, error)
        self._status.upload_failed(task.local_path, str(error))
