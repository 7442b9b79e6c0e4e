"""Hot reload of the workspace configuration file.

This module provides:
- ConfigWatcher: Keeps the current Configuration and publishes changes

A modified smartftp.json is reloaded after a 2 second quiet period, as
editors often write a file in several steps. A newly created file is
loaded at once and a deleted file publishes None. A file that fails to
load or validate also publishes None, so the service disconnects rather
than keep using settings the user is changing.

Subscribers are only called when the configuration actually changed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from smartftp.core.config import CONFIG_FILENAME, Configuration, get_config_file, load_config
from smartftp.core.errors import ConfigError

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

CONFIG_RELOAD_DELAY = 2.0  # seconds

ConfigCallback = Callable[[Configuration | None], None]


class _ConfigFileHandler(FileSystemEventHandler):
    """Forwards events about the configuration file to the event loop."""

    def __init__(self, watcher: ConfigWatcher, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._watcher = watcher
        self._loop = loop

    def _is_config(self, path: str | bytes) -> bool:
        if isinstance(path, bytes):
            path = path.decode("utf-8", errors="replace")
        return Path(path).name == CONFIG_FILENAME

    def _post(self, callback: Callable[[], None]) -> None:
        if not self._loop.is_closed():
            self._loop.call_soon_threadsafe(callback)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_config(event.src_path):
            self._post(self._watcher.file_created)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_config(event.src_path):
            self._post(self._watcher.file_modified)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_config(event.src_path):
            self._post(self._watcher.file_deleted)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic saves write a temp file and rename it over the original
        if event.is_directory:
            return
        if self._is_config(event.dest_path):
            self._post(self._watcher.file_created)
        elif self._is_config(event.src_path):
            self._post(self._watcher.file_deleted)


class ConfigWatcher:
    """Loads smartftp.json and publishes every change to subscribers.

    Usage:
        watcher = ConfigWatcher(workspace_root)
        watcher.add_callback(service.on_config_changed)
        config = watcher.load()
        watcher.start(asyncio.get_running_loop())
    """

    def __init__(self, workspace_root: Path, reload_delay: float = CONFIG_RELOAD_DELAY) -> None:
        self._workspace_root = Path(workspace_root)
        self._path = get_config_file(self._workspace_root)
        self._reload_delay = reload_delay
        self._config: Configuration | None = None
        self._callbacks: list[ConfigCallback] = []
        self._reload_handle: asyncio.TimerHandle | None = None
        self._observer: BaseObserver | None = None

    @property
    def path(self) -> Path:
        """Get the configuration file path."""
        return self._path

    @property
    def config(self) -> Configuration | None:
        """Get the last successfully loaded configuration."""
        return self._config

    def add_callback(self, callback: ConfigCallback) -> None:
        """Call ``callback`` with the new configuration on every change."""
        self._callbacks.append(callback)

    def _publish(self, config: Configuration | None) -> None:
        if config == self._config:
            logger.info("Configuration file reloaded, but no changes detected")
            return
        self._config = config
        for callback in list(self._callbacks):
            callback(config)

    def load(self) -> Configuration | None:
        """Load the file now and publish the result if it changed.

        Returns:
            The loaded configuration, or None if the file is missing or
            invalid.
        """
        if not self._path.exists():
            logger.info("No %s configuration file found", CONFIG_FILENAME)
            self._publish(None)
            return None

        try:
            config = load_config(self._path)
        except ConfigError as e:
            logger.error("Failed to load configuration. Please check %s format: %s", CONFIG_FILENAME, e)
            self._publish(None)
            return None

        if config != self._config:
            logger.info("Loaded configuration: %s", config.display_name)
        self._publish(config)
        return config

    def _cancel_reload(self) -> None:
        if self._reload_handle is not None:
            self._reload_handle.cancel()
            self._reload_handle = None

    def file_modified(self) -> None:
        """Schedule a reload after the quiet period, restarting any pending one."""
        logger.info("Configuration file change detected. Debouncing reload...")
        self._cancel_reload()
        loop = asyncio.get_running_loop()
        self._reload_handle = loop.call_later(self._reload_delay, self._reload_now)

    def _reload_now(self) -> None:
        self._reload_handle = None
        logger.info("Reloading configuration now...")
        self.load()

    def file_created(self) -> None:
        """Load a newly created configuration file at once."""
        logger.info("Configuration file created, loading immediately...")
        self._cancel_reload()
        self.load()

    def file_deleted(self) -> None:
        """Publish None for a deleted configuration file."""
        logger.info("Configuration file deleted")
        self._cancel_reload()
        self._publish(None)

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Start watching the workspace root for configuration changes."""
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(_ConfigFileHandler(self, loop), str(self._workspace_root), recursive=False)
        observer.start()
        self._observer = observer
        logger.debug("Watching %s", self._path)

    def stop(self) -> None:
        """Stop watching and drop a pending reload."""
        self._cancel_reload()
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
