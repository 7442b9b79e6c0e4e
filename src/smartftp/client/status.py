"""Status notifications for the user-facing front end.

This module provides:
- StatusListener: Sink for connection, upload and sync notifications
- LoggingStatusListener: Reports notifications through logging
- StatusBoard: Tracks the current state and renders a one-line summary
- StatusBroadcaster: Fans notifications out to several listeners

Architecture:
    ConnectionSession ─┐
    TransferQueue ─────┼─► StatusBroadcaster ─► StatusBoard / LoggingStatusListener
    TreeSyncEngine ────┘
"""

from __future__ import annotations

import logging
from pathlib import Path

from smartftp.core.types import ConnectionStatus, OperationKind

logger = logging.getLogger(__name__)


class StatusListener:
    """Receives status notifications. All methods are no-ops by default."""

    def connection_changed(self, status: ConnectionStatus) -> None:
        """Connection status changed."""

    def upload_started(self, local_path: Path) -> None:
        """An upload attempt is starting."""

    def upload_succeeded(self, local_path: Path, remote_path: str) -> None:
        """A file was uploaded."""

    def upload_failed(self, local_path: Path, error: str) -> None:
        """A file failed permanently and was dropped from the queue."""

    def queue_idle(self) -> None:
        """The upload queue is empty."""

    def operation_started(self, kind: OperationKind, message: str) -> None:
        """A sync or download operation started or reports progress."""

    def operation_succeeded(self, kind: OperationKind, message: str) -> None:
        """A sync or download operation completed."""

    def operation_failed(self, kind: OperationKind, message: str, error: str) -> None:
        """A sync or download operation failed."""


class LoggingStatusListener(StatusListener):
    """Writes notifications to the log."""

    def connection_changed(self, status: ConnectionStatus) -> None:
        if status.connected:
            logger.info("Connected to %s", status.host or "server")
        elif status.connecting:
            logger.info("Connecting to server...")
        elif status.error:
            logger.error("Connection failed: %s", status.error)
        else:
            logger.info("Disconnected")

    def upload_succeeded(self, local_path: Path, remote_path: str) -> None:
        logger.info("Uploaded: %s -> %s", local_path.name, remote_path)

    def upload_failed(self, local_path: Path, error: str) -> None:
        logger.error("Upload failed for %s: %s", local_path.name, error)

    def operation_succeeded(self, kind: OperationKind, message: str) -> None:
        logger.info("%s success: %s", kind.value.capitalize(), message)

    def operation_failed(self, kind: OperationKind, message: str, error: str) -> None:
        logger.error("%s error: %s: %s", kind.value.capitalize(), message, error)


class StatusBoard(StatusListener):
    """Keeps the latest connection status and running operation.

    An active operation takes precedence over the connection state when
    rendering, as only one line is available.
    """

    def __init__(self) -> None:
        self._connection = ConnectionStatus()
        self._operation = OperationKind.NONE
        self._operation_text = ""
        self.uploads_completed = 0
        self.uploads_failed = 0

    @property
    def connection(self) -> ConnectionStatus:
        """Get the last reported connection status."""
        return self._connection

    @property
    def operation(self) -> OperationKind:
        """Get the operation currently in progress."""
        return self._operation

    def _set_operation(self, kind: OperationKind, text: str = "") -> None:
        self._operation = kind
        self._operation_text = text

    def connection_changed(self, status: ConnectionStatus) -> None:
        self._connection = status

    def upload_started(self, local_path: Path) -> None:
        self._set_operation(OperationKind.UPLOAD, f"Uploading {local_path.name}...")

    def upload_succeeded(self, local_path: Path, remote_path: str) -> None:
        self.uploads_completed += 1
        self._set_operation(OperationKind.NONE)

    def upload_failed(self, local_path: Path, error: str) -> None:
        self.uploads_failed += 1
        self._set_operation(OperationKind.NONE)

    def queue_idle(self) -> None:
        if self._operation is OperationKind.UPLOAD:
            self._set_operation(OperationKind.NONE)

    def operation_started(self, kind: OperationKind, message: str) -> None:
        self._set_operation(kind, message)

    def operation_succeeded(self, kind: OperationKind, message: str) -> None:
        self._set_operation(OperationKind.NONE)

    def operation_failed(self, kind: OperationKind, message: str, error: str) -> None:
        self._set_operation(OperationKind.NONE)

    def render(self) -> str:
        """Render the status as a single line of text."""
        if self._operation is not OperationKind.NONE:
            return self._operation_text

        status = self._connection
        if status.connected:
            text = f"Connected to {status.host or 'server'}"
            if status.last_connected is not None:
                text += f" (since {status.last_connected:%Y-%m-%d %H:%M:%S})"
            return text
        if status.connecting:
            return "Connecting..."
        if status.error:
            return f"Disconnected: {status.error}"
        return "Disconnected"


class StatusBroadcaster(StatusListener):
    """Forwards every notification to all registered listeners."""

    def __init__(self, listeners: list[StatusListener] | None = None) -> None:
        self._listeners: list[StatusListener] = list(listeners or [])

    def add_listener(self, listener: StatusListener) -> None:
        """Register a listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        """Unregister a listener. Unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def connection_changed(self, status: ConnectionStatus) -> None:
        for listener in self._listeners:
            listener.connection_changed(status)

    def upload_started(self, local_path: Path) -> None:
        for listener in self._listeners:
            listener.upload_started(local_path)

    def upload_succeeded(self, local_path: Path, remote_path: str) -> None:
        for listener in self._listeners:
            listener.upload_succeeded(local_path, remote_path)

    def upload_failed(self, local_path: Path, error: str) -> None:
        for listener in self._listeners:
            listener.upload_failed(local_path, error)

    def queue_idle(self) -> None:
        for listener in self._listeners:
            listener.queue_idle()

    def operation_started(self, kind: OperationKind, message: str) -> None:
        for listener in self._listeners:
            listener.operation_started(kind, message)

    def operation_succeeded(self, kind: OperationKind, message: str) -> None:
        for listener in self._listeners:
            listener.operation_succeeded(kind, message)

    def operation_failed(self, kind: OperationKind, message: str, error: str) -> None:
        for listener in self._listeners:
            listener.operation_failed(kind, message, error)
