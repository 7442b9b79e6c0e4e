"""In-memory remote server and transport used by client tests."""

from __future__ import annotations

import asyncio
import posixpath
import time
from collections.abc import Callable
from pathlib import Path

from smartftp.client.transport import Credentials, RemoteEntry, Transport
from smartftp.core.errors import RemoteNotFoundError, TransportError

REMOTE_ROOT = "/www"


class FakeRemote:
    """Remote file tree kept in memory."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, float | None]] = {}
        self.dirs: set[str] = {"/", REMOTE_ROOT}

    def add_file(self, path: str, data: bytes = b"data", mtime: float | None = None) -> None:
        """Create a remote file and its parent directories."""
        self.files[path] = (data, time.time() if mtime is None else mtime)
        parent = posixpath.dirname(path)
        while parent not in ("", "/"):
            self.dirs.add(parent)
            parent = posixpath.dirname(parent)

    def add_dir(self, path: str) -> None:
        """Create a remote directory."""
        self.dirs.add(path)


class FakeTransport(Transport):
    """Transport backed by a FakeRemote.

    Failures are injected per operation name; each entry of
    ``failures[op]`` is raised by one call. Transient errors (421/426
    or ConnectionError) close the connection, like the real transports.
    """

    def __init__(self, remote: FakeRemote) -> None:
        self.remote = remote
        self.failures: dict[str, list[BaseException]] = {}
        self.calls: list[tuple[str, str]] = []
        self.connect_count = 0
        self.connect_gate: asyncio.Event | None = None
        self._open = False

    @property
    def closed(self) -> bool:
        return not self._open

    def fail(self, op: str, *errors: BaseException) -> None:
        """Make the next calls of ``op`` raise ``errors`` in order."""
        self.failures.setdefault(op, []).extend(errors)

    def _check(self, op: str, path: str) -> None:
        self.calls.append((op, path))
        pending = self.failures.get(op)
        if pending:
            error = pending.pop(0)
            if isinstance(error, ConnectionError) or getattr(error, "code", None) in (421, 426):
                self._open = False
            raise error
        if op != "connect" and not self._open:
            raise TransportError("Not connected")

    async def connect(self, credentials: Credentials) -> None:
        self.connect_count += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        self._check("connect", credentials.host)
        self._open = True

    async def list(self, remote_path: str) -> list[RemoteEntry]:
        self._check("list", remote_path)
        if remote_path not in self.remote.dirs:
            raise RemoteNotFoundError(f"550 {remote_path}: No such directory", code=550)

        entries: list[RemoteEntry] = []
        for d in sorted(self.remote.dirs):
            if d != remote_path and posixpath.dirname(d) == remote_path:
                entries.append(RemoteEntry(posixpath.basename(d), is_directory=True, is_file=False))
        for f, (data, mtime) in sorted(self.remote.files.items()):
            if posixpath.dirname(f) == remote_path:
                entries.append(
                    RemoteEntry(
                        posixpath.basename(f),
                        is_directory=False,
                        is_file=True,
                        size=len(data),
                        modified_at=mtime,
                    )
                )
        return entries

    async def upload_from(self, local_path: Path, remote_path: str) -> None:
        self._check("upload", remote_path)
        data = Path(local_path).read_bytes()
        self.remote.add_file(remote_path, data)

    async def download_to(self, local_path: Path, remote_path: str) -> None:
        self._check("download", remote_path)
        if remote_path not in self.remote.files:
            raise RemoteNotFoundError(f"550 {remote_path}: No such file", code=550)
        Path(local_path).write_bytes(self.remote.files[remote_path][0])

    async def remove(self, remote_path: str) -> None:
        self._check("remove", remote_path)
        if remote_path not in self.remote.files:
            raise RemoteNotFoundError(f"550 {remote_path}: No such file", code=550)
        del self.remote.files[remote_path]

    async def remove_dir(self, remote_path: str) -> None:
        self._check("remove_dir", remote_path)
        if remote_path not in self.remote.dirs:
            raise RemoteNotFoundError(f"550 {remote_path}: No such directory", code=550)
        prefix = remote_path.rstrip("/") + "/"
        self.remote.dirs = {d for d in self.remote.dirs if d != remote_path and not d.startswith(prefix)}
        self.remote.files = {f: v for f, v in self.remote.files.items() if not f.startswith(prefix)}

    async def ensure_dir(self, remote_path: str) -> None:
        self._check("ensure_dir", remote_path)
        current = ""
        for part in (p for p in remote_path.split("/") if p):
            current = f"{current}/{part}"
            self.remote.dirs.add(current)

    async def close(self) -> None:
        self.calls.append(("close", ""))
        self._open = False

    def uploaded(self) -> list[str]:
        """Remote paths of every upload attempt, in order."""
        return [path for op, path in self.calls if op == "upload"]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds, failing the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
