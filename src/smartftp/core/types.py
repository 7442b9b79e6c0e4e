"""Shared types for smartftp.

This module defines the connection status value and the enums shared by
the session, the status listeners and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ConnectionState(str, Enum):
    """Lifecycle state of the transport connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class OperationKind(str, Enum):
    """Long-running operation currently shown to the user."""

    NONE = "none"
    UPLOAD = "upload"
    SYNC = "sync"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class ConnectionStatus:
    """Snapshot of the connection status.

    At most one of ``connected`` and ``connecting`` is true; both false
    means disconnected.

    Attributes:
        connected: A verified connection is live.
        connecting: A handshake is in progress.
        error: Message of the last connection failure, if any.
        last_connected: When the last successful connect completed.
        host: Host of the live connection.
    """

    connected: bool = False
    connecting: bool = False
    error: str | None = None
    last_connected: datetime | None = None
    host: str | None = None

    def __post_init__(self) -> None:
        if self.connected and self.connecting:
            raise ValueError("connected and connecting are mutually exclusive")

    @property
    def state(self) -> ConnectionState:
        """Get the lifecycle state this snapshot represents."""
        if self.connected:
            return ConnectionState.CONNECTED
        if self.connecting:
            return ConnectionState.CONNECTING
        return ConnectionState.DISCONNECTED
