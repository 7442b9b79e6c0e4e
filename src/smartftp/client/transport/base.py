"""Transport abstraction for remote file operations.

This module provides:
- RemoteEntry: One item of a remote directory listing
- Credentials: Connection parameters derived from a Configuration
- Transport: Async interface used by the session, queue and sync engine
- ExecutorTransport: Base for transports wrapping a blocking client
- replace_on_success: Download into a temporary sibling file

Blocking protocol clients (ftplib, paramiko) are driven from a
single-worker executor owned by the transport, so calls issued from the
event loop run strictly one after another on one thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from smartftp.core.config import Configuration


T = TypeVar("T")


@contextlib.contextmanager
def replace_on_success(local_path: Path) -> Iterator[Path]:
    """Yield a temporary path next to ``local_path`` to download into.

    The temporary file replaces ``local_path`` only when the block
    completes; on error it is removed and ``local_path`` is left as it was.
    """
    local_path = Path(local_path)
    partial = local_path.with_name(f".{local_path.name}.part")
    try:
        yield partial
    except BaseException:
        with contextlib.suppress(OSError):
            partial.unlink()
        raise
    os.replace(partial, local_path)


@dataclass(frozen=True)
class RemoteEntry:
    """Remote directory entry.

    Attributes:
        name: Entry name (no directory part).
        is_directory: Entry is a directory.
        is_file: Entry is a regular file.
        size: Size in bytes, if reported.
        modified_at: Modification time as a Unix timestamp, if reported.
    """

    name: str
    is_directory: bool
    is_file: bool
    size: int | None = None
    modified_at: float | None = None


@dataclass(frozen=True)
class Credentials:
    """Parameters needed to open a transport connection."""

    host: str
    port: int
    username: str
    password: str
    timeout: float = 30.0

    @classmethod
    def from_config(cls, config: Configuration) -> Credentials:
        """Extract credentials from a configuration."""
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
        )


class Transport(ABC):
    """Async remote file transfer client.

    Implementations raise TransportError (or RemoteNotFoundError) for
    protocol failures and mark themselves closed when the underlying
    connection is lost.
    """

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True when no usable connection is open."""

    @abstractmethod
    async def connect(self, credentials: Credentials) -> None:
        """Open the connection and authenticate."""

    @abstractmethod
    async def list(self, remote_path: str) -> list[RemoteEntry]:
        """List a remote directory."""

    @abstractmethod
    async def upload_from(self, local_path: Path, remote_path: str) -> None:
        """Upload a local file, replacing the remote file."""

    @abstractmethod
    async def download_to(self, local_path: Path, remote_path: str) -> None:
        """Download a remote file, replacing the local file."""

    @abstractmethod
    async def remove(self, remote_path: str) -> None:
        """Remove a remote file."""

    @abstractmethod
    async def remove_dir(self, remote_path: str) -> None:
        """Remove a remote directory and everything below it."""

    @abstractmethod
    async def ensure_dir(self, remote_path: str) -> None:
        """Create a remote directory and its parents if missing."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Safe to call when already closed."""


class ExecutorTransport(Transport):
    """Transport running a blocking client on a dedicated worker thread.

    Subclasses implement the ``_sync_*`` methods; this class dispatches
    them through a single-worker ThreadPoolExecutor.
    """

    protocol_name = "transport"

    def __init__(self) -> None:
        self._executor: ThreadPoolExecutor | None = None

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix=f"smartftp-{self.protocol_name}",
            )
        return self._executor

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._get_executor(), func, *args)

    async def connect(self, credentials: Credentials) -> None:
        await self._run(self._sync_connect, credentials)

    async def list(self, remote_path: str) -> list[RemoteEntry]:
        return await self._run(self._sync_list, remote_path)

    async def upload_from(self, local_path: Path, remote_path: str) -> None:
        await self._run(self._sync_upload, Path(local_path), remote_path)

    async def download_to(self, local_path: Path, remote_path: str) -> None:
        await self._run(self._sync_download, Path(local_path), remote_path)

    async def remove(self, remote_path: str) -> None:
        await self._run(self._sync_remove, remote_path)

    async def remove_dir(self, remote_path: str) -> None:
        await self._run(self._sync_remove_dir, remote_path)

    async def ensure_dir(self, remote_path: str) -> None:
        await self._run(self._sync_ensure_dir, remote_path)

    async def close(self) -> None:
        if self._executor is None:
            return
        try:
            await self._run(self._sync_close)
        finally:
            self._executor.shutdown(wait=False)
            self._executor = None

    @abstractmethod
    def _sync_connect(self, credentials: Credentials) -> None: ...

    @abstractmethod
    def _sync_list(self, remote_path: str) -> list[RemoteEntry]: ...

    @abstractmethod
    def _sync_upload(self, local_path: Path, remote_path: str) -> None: ...

    @abstractmethod
    def _sync_download(self, local_path: Path, remote_path: str) -> None: ...

    @abstractmethod
    def _sync_remove(self, remote_path: str) -> None: ...

    @abstractmethod
    def _sync_remove_dir(self, remote_path: str) -> None: ...

    @abstractmethod
    def _sync_ensure_dir(self, remote_path: str) -> None: ...

    @abstractmethod
    def _sync_close(self) -> None: ...
