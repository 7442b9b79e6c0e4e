"""Remote transports.

- FTPTransport: ftplib based FTP client
- SFTPTransport: paramiko based SFTP client
- create_transport: Picks the transport for a configuration
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from smartftp.client.transport.base import (
    Credentials,
    ExecutorTransport,
    RemoteEntry,
    Transport,
)
from smartftp.client.transport.ftp import FTPTransport
from smartftp.core.config import Protocol

if TYPE_CHECKING:
    from smartftp.core.config import Configuration


def create_transport(config: Configuration) -> Transport:
    """Create an unconnected transport for the configured protocol."""
    if config.protocol is Protocol.SFTP:
        from smartftp.client.transport.sftp import SFTPTransport

        return SFTPTransport()
    return FTPTransport()


__all__ = [
    "Credentials",
    "ExecutorTransport",
    "FTPTransport",
    "RemoteEntry",
    "Transport",
    "create_transport",
]
