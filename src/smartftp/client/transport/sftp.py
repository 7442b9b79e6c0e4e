"""SFTP transport built on paramiko."""

from __future__ import annotations

import contextlib
import errno
import logging
import posixpath
import stat
from pathlib import Path

import paramiko

from smartftp.client.transport.base import (
    Credentials,
    ExecutorTransport,
    RemoteEntry,
    replace_on_success,
)
from smartftp.core.errors import RemoteNotFoundError, TransportError

logger = logging.getLogger(__name__)


class SFTPTransport(ExecutorTransport):
    """Transport for SSH file transfer servers."""

    protocol_name = "sftp"

    def __init__(self) -> None:
        super().__init__()
        self._transport: paramiko.Transport | None = None
        self._client: paramiko.SFTPClient | None = None

    @property
    def closed(self) -> bool:
        return (
            self._client is None
            or self._transport is None
            or not self._transport.is_active()
        )

    def _sftp(self) -> paramiko.SFTPClient:
        if self.closed:
            raise TransportError("Not connected")
        assert self._client is not None
        return self._client

    def _drop_connection(self) -> None:
        """Close SFTP client + underlying transport."""
        try:
            if self._client is not None:
                self._client.close()
        except (OSError, paramiko.SSHException):
            logger.debug("Error closing SFTP client", exc_info=True)
        finally:
            self._client = None
        try:
            if self._transport is not None:
                self._transport.close()
        except (OSError, paramiko.SSHException):
            logger.debug("Error closing SSH transport", exc_info=True)
        finally:
            self._transport = None

    def _translate(self, error: Exception, action: str) -> TransportError:
        """Convert a paramiko or socket error into a TransportError."""
        message = f"{action}: {error}"
        if isinstance(error, FileNotFoundError) or getattr(error, "errno", None) == errno.ENOENT:
            return RemoteNotFoundError(message)
        if isinstance(error, PermissionError):
            return TransportError(message)
        if isinstance(error, (paramiko.SSHException, EOFError, ConnectionError, TimeoutError)):
            self._drop_connection()
        elif isinstance(error, OSError) and self._transport is not None and not self._transport.is_active():
            self._drop_connection()
        return TransportError(message)

    def _sync_connect(self, credentials: Credentials) -> None:
        self._drop_connection()
        transport: paramiko.Transport | None = None
        try:
            transport = paramiko.Transport((credentials.host, credentials.port))
            transport.banner_timeout = credentials.timeout
            transport.auth_timeout = credentials.timeout
            transport.connect(username=credentials.username, password=credentials.password)
            client = paramiko.SFTPClient.from_transport(transport)
        except (paramiko.SSHException, OSError, EOFError) as e:
            if transport is not None:
                with contextlib.suppress(OSError, paramiko.SSHException):
                    transport.close()
            raise TransportError(f"connect to {credentials.host}: {e}") from e
        if client is None:
            transport.close()
            raise TransportError(f"connect to {credentials.host}: SFTP subsystem unavailable")
        client.get_channel().settimeout(credentials.timeout)
        self._transport = transport
        self._client = client
        logger.debug("SFTP session opened to %s:%d", credentials.host, credentials.port)

    def _sync_list(self, remote_path: str) -> list[RemoteEntry]:
        sftp = self._sftp()
        try:
            attrs = sftp.listdir_attr(remote_path)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._translate(e, f"list {remote_path}") from e

        entries: list[RemoteEntry] = []
        for attr in attrs:
            mode = attr.st_mode or 0
            entries.append(
                RemoteEntry(
                    name=attr.filename,
                    is_directory=stat.S_ISDIR(mode),
                    is_file=stat.S_ISREG(mode),
                    size=attr.st_size,
                    modified_at=float(attr.st_mtime) if attr.st_mtime is not None else None,
                )
            )
        return entries

    def _sync_upload(self, local_path: Path, remote_path: str) -> None:
        sftp = self._sftp()
        try:
            sftp.put(str(local_path), remote_path)
        except FileNotFoundError as e:
            # Local side vanished; leave it for the queue to detect
            if not local_path.exists():
                raise
            raise self._translate(e, f"upload {remote_path}") from e
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._translate(e, f"upload {remote_path}") from e

    def _sync_download(self, local_path: Path, remote_path: str) -> None:
        sftp = self._sftp()
        try:
            with replace_on_success(local_path) as partial:
                sftp.get(remote_path, str(partial))
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._translate(e, f"download {remote_path}") from e

    def _sync_remove(self, remote_path: str) -> None:
        sftp = self._sftp()
        try:
            sftp.remove(remote_path)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._translate(e, f"remove {remote_path}") from e

    def _sync_remove_dir(self, remote_path: str) -> None:
        sftp = self._sftp()
        for entry in self._sync_list(remote_path):
            child = posixpath.join(remote_path, entry.name)
            if entry.is_directory:
                self._sync_remove_dir(child)
            else:
                self._sync_remove(child)
        try:
            sftp.rmdir(remote_path)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._translate(e, f"remove directory {remote_path}") from e

    def _sync_ensure_dir(self, remote_path: str) -> None:
        sftp = self._sftp()
        current = "/" if remote_path.startswith("/") else ""
        for part in (p for p in remote_path.split("/") if p):
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
                continue
            except FileNotFoundError:
                pass
            except (paramiko.SSHException, OSError, EOFError) as e:
                raise self._translate(e, f"stat {current}") from e
            try:
                sftp.mkdir(current)
            except (paramiko.SSHException, OSError, EOFError) as e:
                raise self._translate(e, f"mkdir {current}") from e

    def _sync_close(self) -> None:
        self._drop_connection()
