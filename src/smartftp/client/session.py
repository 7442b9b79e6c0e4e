"""Connection lifecycle for the single transport connection.

This module provides:
- ErrorClass, classify: Sort operation failures into transient, benign
  and fatal
- ConnectionSession: Owns the transport, connects, detects loss and
  schedules reconnects

States:
    DISCONNECTED ──connect()──► CONNECTING ──ok──► CONNECTED
         ▲                          │                  │
         └────────── failure ───────┘◄── loss/close ───┘
                 (reconnect timer, flat delay)

The session is also the owner of the exclusivity flag held by sync and
download operations. While it is held the upload queue does not drain;
releasing it notifies subscribers so the queue can resume.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from smartftp.client.background import BackgroundTasks
from smartftp.client.status import StatusListener
from smartftp.client.transport import Credentials, create_transport
from smartftp.core.errors import (
    NotConnectedError,
    RemoteNotFoundError,
    SessionBusyError,
    SmartFTPError,
    TransportError,
)
from smartftp.core.types import ConnectionStatus

if TYPE_CHECKING:
    from smartftp.client.transport import Transport
    from smartftp.core.config import Configuration

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 5.0  # seconds, flat (no backoff growth)

# FTP replies meaning the control connection is gone or unusable:
# 421 service not available, 426 connection closed, 530 not logged in
TRANSIENT_CODES = frozenset({421, 426, 530})

# Message fragments of network-level failures
TRANSIENT_MARKERS = (
    "econnreset",
    "connection reset",
    "timeout",
    "timed out",
    "not connected",
    "connection closed",
    "socket is closed",
    "broken pipe",
)

NETWORK_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    socket.timeout,
    EOFError,
    NotConnectedError,
)


class ErrorClass(Enum):
    """How a failed operation should be handled."""

    TRANSIENT = "transient"  # Connection lost, reconnect and maybe retry
    BENIGN = "benign"  # Remote path absent, success for removals
    FATAL = "fatal"  # Report to caller, no retry


def classify(error: BaseException) -> ErrorClass:
    """Classify an operation failure.

    Args:
        error: Exception raised by a transport or session operation.

    Returns:
        TRANSIENT for lost connections (421/426/530, resets, timeouts),
        BENIGN for remote not-found, FATAL for everything else.
    """
    if isinstance(error, RemoteNotFoundError):
        return ErrorClass.BENIGN

    if isinstance(error, TransportError) and error.code in TRANSIENT_CODES:
        return ErrorClass.TRANSIENT

    candidates = [error]
    if error.__cause__ is not None:
        candidates.append(error.__cause__)
    for candidate in candidates:
        if isinstance(candidate, NETWORK_EXCEPTIONS):
            return ErrorClass.TRANSIENT

    message = str(error).lower()
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return ErrorClass.TRANSIENT

    return ErrorClass.FATAL


def connection_settings_changed(previous: Configuration, config: Configuration) -> bool:
    """True if ``config`` points to another server or login than ``previous``."""
    return (
        Credentials.from_config(previous) != Credentials.from_config(config)
        or previous.protocol is not config.protocol
    )


class ConnectionSession:
    """State machine around the one logical transport connection.

    Usage:
        session = ConnectionSession(config)
        session.add_connected_callback(queue.schedule_drain)
        await session.connect()

        async with session.exclusive("sync"):
            entries = await session.transport.list("/www")

        await session.disconnect()
    """

    def __init__(
        self,
        config: Configuration | None = None,
        transport_factory: Callable[[Configuration], Transport] = create_transport,
        status: StatusListener | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        """Initialize the session.

        Args:
            config: Initial configuration (None until one is loaded).
            transport_factory: Creates an unconnected transport for a config.
            status: Listener for connection status changes.
            reconnect_delay: Seconds between automatic reconnect attempts.
        """
        self._config = config
        self._transport_factory = transport_factory
        self._status_listener = status or StatusListener()
        self._reconnect_delay = reconnect_delay

        self._status = ConnectionStatus()
        self._transport: Transport | None = None
        self._connecting = False
        # Set by disconnect(); suppresses automatic reconnects
        self._stopped = False
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._exclusive: str | None = None

        self._connected_callbacks: list[Callable[[], None]] = []
        self._released_callbacks: list[Callable[[], None]] = []
        self._tasks = BackgroundTasks("session")

    @property
    def config(self) -> Configuration | None:
        """Get the active configuration."""
        return self._config

    @property
    def status(self) -> ConnectionStatus:
        """Get the current connection status."""
        return self._status

    @property
    def is_connected(self) -> bool:
        """True when the status is connected and the transport is open."""
        return (
            self._status.connected
            and self._transport is not None
            and not self._transport.closed
        )

    @property
    def transport_open(self) -> bool:
        """True when a transport exists and reports itself open."""
        return self._transport is not None and not self._transport.closed

    @property
    def transport(self) -> Transport:
        """Get the live transport.

        Raises:
            NotConnectedError: If no connection is live.
        """
        if not self.is_connected or self._transport is None:
            raise NotConnectedError("Not connected")
        return self._transport

    @property
    def is_connecting(self) -> bool:
        """True while a connection attempt is in progress."""
        return self._connecting

    @property
    def reconnect_pending(self) -> bool:
        """True while a reconnect timer is scheduled."""
        return self._reconnect_handle is not None

    @property
    def exclusive_operation(self) -> str | None:
        """Name of the exclusive operation in progress, if any."""
        return self._exclusive

    def add_connected_callback(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` after every successful connect."""
        self._connected_callbacks.append(callback)

    def add_released_callback(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` whenever the exclusivity flag is released."""
        self._released_callbacks.append(callback)

    def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        self._status_listener.connection_changed(status)

    async def apply_config(self, config: Configuration | None) -> None:
        """Replace the configuration.

        A None configuration disconnects. If the connection parameters
        changed while connected, the old connection is closed so the next
        connect uses the new server.
        """
        previous = self._config
        self._config = config
        if config is None:
            await self.disconnect()
            return

        if (
            previous is not None
            and self._transport is not None
            and connection_settings_changed(previous, config)
        ):
            logger.info("Connection settings changed, closing current connection")
            await self.disconnect()
            self._stopped = False

    async def connect(self) -> bool:
        """Connect, authenticate and verify by listing the remote root.

        Returns:
            True if connected (or already connected), False if the attempt
            failed or another attempt is in progress.
        """
        config = self._config
        if config is None:
            logger.error("No configuration found")
            return False

        if self._connecting:
            logger.warning("Already connecting to %s", config.host)
            return False

        if self.is_connected:
            logger.debug("Already connected to %s", config.host)
            return True

        self._cancel_reconnect()
        self._stopped = False
        self._connecting = True
        self._set_status(ConnectionStatus(connecting=True))

        previous, self._transport = self._transport, None
        if previous is not None and not previous.closed:
            logger.warning("Previous connection was not closed, closing it")
            await self._close_quietly(previous)

        transport = self._transport_factory(config)
        try:
            logger.info("Connecting to %s:%d...", config.host, config.port)
            await transport.connect(Credentials.from_config(config))
            if transport.closed:
                raise TransportError("Connection closed immediately after login")
            logger.debug("Connection established, verifying with list of %s", config.remote_path)
            await transport.list(config.remote_path)
        except (SmartFTPError, OSError, EOFError) as e:
            self._connecting = False
            logger.error("Connection to %s failed: %s", config.host, e)
            await self._close_quietly(transport)
            self._set_status(ConnectionStatus(error=str(e)))
            self._schedule_reconnect()
            return False

        self._connecting = False
        if self._stopped or self._config is None:
            logger.info("Discarding connection to %s", config.host)
            await self._close_quietly(transport)
            return False

        if connection_settings_changed(config, self._config):
            logger.info(
                "Connection settings changed while connecting to %s, reconnecting", config.host
            )
            await self._close_quietly(transport)
            self._set_status(ConnectionStatus())
            self.request_connect()
            return False

        self._transport = transport
        self._set_status(
            ConnectionStatus(connected=True, last_connected=datetime.now(), host=config.host)
        )
        for callback in list(self._connected_callbacks):
            callback()
        return True

    async def disconnect(self) -> None:
        """Close the connection and cancel any scheduled reconnect.

        An intentional disconnect never schedules a reconnect.
        """
        self._stopped = True
        self._cancel_reconnect()

        transport, self._transport = self._transport, None
        if transport is not None and not transport.closed:
            logger.info("Closing connection...")
            await self._close_quietly(transport)

        if self._status.connected or self._status.connecting:
            self._set_status(ConnectionStatus())
            logger.info("Disconnected from server")

    async def wait_idle(self) -> None:
        """Wait for background connection attempts to finish."""
        await self._tasks.wait()

    async def close(self) -> None:
        """Disconnect and cancel background work."""
        await self.disconnect()
        self._tasks.cancel_all()

    async def ensure_connected(self, operation: str) -> bool:
        """Make sure a live connection exists before ``operation``.

        Returns:
            True if connected (possibly after reconnecting).
        """
        if self.is_connected:
            return True

        logger.warning("Connection lost before %s, attempting reconnect", operation)
        if self._status.connected:
            self._set_status(ConnectionStatus(error=f"Connection lost before {operation}"))
        if await self.connect():
            return True
        logger.error("Reconnect failed, cannot perform %s", operation)
        return False

    def request_connect(self) -> None:
        """Start a connection attempt in the background."""
        if self._connecting or self.is_connected:
            return
        self._tasks.spawn(self.connect(), name="connect")

    def handle_error(self, error: BaseException, context: str) -> ErrorClass:
        """Classify a failure and react to it.

        Transient failures flip the status to disconnected and schedule a
        reconnect. Benign and fatal failures do not change state.

        Args:
            error: The exception raised by the operation.
            context: Description of the operation for the log.

        Returns:
            The classification, for the caller to decide what to do.
        """
        kind = classify(error)
        if kind is ErrorClass.TRANSIENT:
            logger.warning("%s failed: %s. Assuming connection lost.", context, error)
            self._mark_lost(f"Connection lost during {context}")
        elif kind is ErrorClass.BENIGN:
            logger.debug("%s: remote path not found (%s)", context, error)
        else:
            logger.error("%s failed: %s", context, error)
        return kind

    def _mark_lost(self, reason: str) -> None:
        if not self._connecting:
            self._set_status(ConnectionStatus(error=reason))
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._connecting or self._reconnect_handle is not None:
            return
        if self._stopped or self._config is None:
            return

        logger.info("Scheduling reconnect in %.0f seconds...", self._reconnect_delay)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self._reconnect_delay, self._on_reconnect_timer)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self.is_connected or self._connecting:
            logger.info("Reconnect cancelled (already connected or connecting)")
            return
        logger.info("Attempting scheduled reconnect...")
        self._tasks.spawn(self.connect(), name="reconnect")

    async def _close_quietly(self, transport: Transport) -> None:
        try:
            await transport.close()
        except (SmartFTPError, OSError, EOFError) as e:
            logger.warning("Error closing connection: %s", e)

    async def ensure_remote_dir(self, remote_dir: str) -> None:
        """Create a remote directory if needed. Root and empty paths are skipped."""
        if not remote_dir or remote_dir in ("/", "."):
            return
        await self.transport.ensure_dir(remote_dir)

    async def delete_file(self, remote_path: str) -> bool:
        """Delete a remote file. A missing file counts as deleted.

        Returns:
            True if the file is gone.
        """
        return await self._delete(remote_path, directory=False)

    async def delete_directory(self, remote_path: str) -> bool:
        """Delete a remote directory recursively. A missing one counts as deleted.

        Returns:
            True if the directory is gone.
        """
        return await self._delete(remote_path, directory=True)

    async def _delete(self, remote_path: str, directory: bool) -> bool:
        what = "directory" if directory else "file"
        if not await self.ensure_connected(f"delete remote {what}"):
            return False

        logger.info("Deleting remote %s: %s", what, remote_path)
        try:
            if directory:
                await self.transport.remove_dir(remote_path)
            else:
                await self.transport.remove(remote_path)
        except (SmartFTPError, OSError, EOFError) as e:
            kind = self.handle_error(e, f"delete remote {what} {remote_path}")
            if kind is ErrorClass.BENIGN:
                logger.warning("Remote %s not found, treating as deleted: %s", what, remote_path)
                return True
            return False

        logger.info("Deleted remote %s: %s", what, remote_path)
        return True

    @contextlib.asynccontextmanager
    async def exclusive(self, operation: str) -> AsyncIterator[None]:
        """Hold the sync/download exclusivity flag for the block.

        The flag is released on every exit path, and release notifies the
        registered callbacks (the upload queue resumes draining).

        Raises:
            SessionBusyError: If another exclusive operation is running.
        """
        if self._exclusive is not None:
            raise SessionBusyError(f"{self._exclusive} already in progress")

        self._exclusive = operation
        try:
            yield
        finally:
            self._exclusive = None
            for callback in list(self._released_callbacks):
                callback()
