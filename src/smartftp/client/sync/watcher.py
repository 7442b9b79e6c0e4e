"""File system watcher feeding the change coalescer.

This module provides:
- FileWatcher: Watches the workspace using watchdog
- WorkspaceEventHandler: Translates watchdog events into coalescer calls
- matches_watch_glob: The ``watcher.files`` filter

watchdog delivers events on its observer thread. The handler does no
work there: every event is handed to the event loop with
``loop.call_soon_threadsafe`` and processed by the ChangeCoalescer.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirDeletedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from smartftp.client.sync.paths import relative_path

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from smartftp.client.sync.coalescer import ChangeCoalescer

logger = logging.getLogger(__name__)


def matches_watch_glob(rel_path: str, pattern: str) -> bool:
    """Check a workspace-relative path against the ``watcher.files`` glob.

    A leading ``**/`` also matches files at the workspace root, so the
    default ``**/*`` watches everything.
    """
    if not pattern or pattern in ("*", "**", "**/*"):
        return True
    if fnmatch.fnmatchcase(rel_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:])


def _decode(path: str | bytes) -> Path:
    if isinstance(path, bytes):
        path = path.decode("utf-8", errors="replace")
    return Path(path)


class WorkspaceEventHandler(FileSystemEventHandler):
    """Forwards watchdog events to the coalescer on the event loop."""

    def __init__(
        self,
        base_path: Path,
        coalescer: ChangeCoalescer,
        loop: asyncio.AbstractEventLoop,
        files: str = "**/*",
    ) -> None:
        """Initialize the handler.

        Args:
            base_path: Watched workspace root.
            coalescer: Receiver of the events.
            loop: Event loop the coalescer runs on.
            files: Glob restricting the reported files.
        """
        super().__init__()
        self._base_path = base_path
        self._coalescer = coalescer
        self._loop = loop
        self._files = files

    def _wanted(self, path: Path) -> bool:
        try:
            rel = relative_path(path, self._base_path)
        except ValueError:
            return False
        return matches_watch_glob(rel, self._files)

    def _post(self, callback: Callable[..., None], *args: object) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        if not isinstance(event, FileCreatedEvent):
            return  # Files inside a new directory report themselves
        path = _decode(event.src_path)
        if self._wanted(path):
            self._post(self._coalescer.on_created, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        if not isinstance(event, FileModifiedEvent):
            return
        path = _decode(event.src_path)
        if self._wanted(path):
            self._post(self._coalescer.on_modified, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        if not isinstance(event, (FileDeletedEvent, DirDeletedEvent)):
            return
        path = _decode(event.src_path)
        if self._wanted(path):
            self._post(self._coalescer.on_deleted, path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event as a delete of the source and a create of the target."""
        if not isinstance(event, (FileMovedEvent, DirMovedEvent)):
            return
        src = _decode(event.src_path)
        if self._wanted(src):
            self._post(self._coalescer.on_deleted, src, event.is_directory)
        if not event.is_directory:
            dest = _decode(event.dest_path)
            if self._wanted(dest):
                self._post(self._coalescer.on_created, dest)


class FileWatcher:
    """Watches the workspace for file changes."""

    def __init__(
        self,
        watch_path: Path,
        coalescer: ChangeCoalescer,
        loop: asyncio.AbstractEventLoop,
        files: str = "**/*",
    ) -> None:
        """Initialize the file watcher.

        Args:
            watch_path: Workspace root to watch recursively.
            coalescer: Receiver of the events.
            loop: Event loop the coalescer runs on.
            files: Glob restricting the reported files.

        Raises:
            ValueError: If ``watch_path`` is not a directory.
        """
        self._watch_path = Path(watch_path)
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")

        self._files = files
        self._handler = WorkspaceEventHandler(self._watch_path, coalescer, loop, files)
        self._observer: BaseObserver | None = None

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._observer is not None

    def start(self) -> None:
        """Start watching for changes."""
        if self._observer is not None:
            return

        observer = Observer()
        observer.schedule(self._handler, str(self._watch_path), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Started file watching with pattern: %s", self._files)

    def stop(self) -> None:
        """Stop watching for changes."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("Stopped file watching")

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
