"""Exception hierarchy for smartftp.

This module provides:
- SmartFTPError: Base class for every error raised by the package
- ConfigError: Invalid or unreadable configuration
- TransportError, RemoteNotFoundError: Protocol-level failures
- NotConnectedError, SessionBusyError: Session state violations
- SyncError, LocalFileVanishedError: Transfer and sync failures
"""

from __future__ import annotations


class SmartFTPError(Exception):
    """Base exception for smartftp errors."""


class ConfigError(SmartFTPError):
    """Configuration is missing, malformed or invalid."""


class TransportError(SmartFTPError):
    """A remote operation failed.

    Attributes:
        code: FTP reply code when the server supplied one (e.g. 421, 550).
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class RemoteNotFoundError(TransportError):
    """The remote path does not exist."""


class NotConnectedError(SmartFTPError):
    """No live connection is available for the requested operation."""


class SessionBusyError(SmartFTPError):
    """An exclusive sync or download operation is already running."""


class SyncError(SmartFTPError):
    """Base exception for transfer and sync errors."""


class LocalFileVanishedError(SyncError):
    """A queued local file was removed before it could be uploaded."""
