"""FTP transport built on the standard library ftplib client.

Directory listings use MLSD when the server supports it and fall back to
NLST with per-entry SIZE/MDTM probes otherwise. ftplib reply errors are
translated into TransportError carrying the numeric reply code; 550
becomes RemoteNotFoundError.
"""

from __future__ import annotations

import calendar
import contextlib
import ftplib
import logging
import posixpath
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from smartftp.client.transport.base import (
    Credentials,
    ExecutorTransport,
    RemoteEntry,
    replace_on_success,
)
from smartftp.core.errors import RemoteNotFoundError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CODE_NOT_FOUND = 550
# Reply codes meaning the server does not implement a command
UNSUPPORTED_CODES = frozenset({500, 501, 502, 504})
BLOCK_SIZE = 64 * 1024


def _reply_code(error: Exception) -> int | None:
    """Extract the three-digit reply code from an ftplib error."""
    text = str(error).strip()
    if len(text) >= 3 and text[:3].isdigit():
        return int(text[:3])
    return None


def _parse_timestamp(value: str) -> float | None:
    """Parse an MLSD/MDTM ``YYYYMMDDHHMMSS[.sss]`` UTC timestamp."""
    value = value.strip()
    base, _, fraction = value.partition(".")
    if len(base) != 14 or not base.isdigit():
        return None
    try:
        seconds = calendar.timegm(time.strptime(base, "%Y%m%d%H%M%S"))
    except ValueError:
        return None
    if fraction.isdigit():
        return seconds + float(f"0.{fraction}")
    return float(seconds)


class FTPTransport(ExecutorTransport):
    """Transport for plain FTP servers."""

    protocol_name = "ftp"

    def __init__(self) -> None:
        super().__init__()
        self._ftp: ftplib.FTP | None = None
        self._mlsd_supported = True

    @property
    def closed(self) -> bool:
        return self._ftp is None or self._ftp.sock is None

    def _client(self) -> ftplib.FTP:
        if self._ftp is None or self._ftp.sock is None:
            raise TransportError("Not connected")
        return self._ftp

    def _drop_connection(self) -> None:
        if self._ftp is not None:
            try:
                self._ftp.close()
            except OSError:
                logger.debug("Error closing FTP socket", exc_info=True)
        self._ftp = None

    def _translate(self, error: Exception, action: str) -> TransportError:
        """Convert an ftplib or socket error into a TransportError."""
        if isinstance(error, ftplib.Error):
            code = _reply_code(error)
            message = f"{action}: {error}"
            if code == CODE_NOT_FOUND:
                return RemoteNotFoundError(message, code=code)
            if code in (421, 426):
                self._drop_connection()
            return TransportError(message, code=code)

        # Socket level failure: the control connection is unusable
        self._drop_connection()
        return TransportError(f"{action}: {error}")

    def _call(self, action: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return func(*args)
        except (ftplib.Error, OSError, EOFError) as e:
            raise self._translate(e, action) from e

    def _sync_connect(self, credentials: Credentials) -> None:
        self._drop_connection()
        ftp = ftplib.FTP(timeout=credentials.timeout)
        try:
            ftp.connect(credentials.host, credentials.port)
            ftp.login(credentials.username, credentials.password)
            ftp.set_pasv(True)
        except (ftplib.Error, OSError, EOFError) as e:
            with contextlib.suppress(OSError):
                ftp.close()
            code = _reply_code(e) if isinstance(e, ftplib.Error) else None
            raise TransportError(f"connect to {credentials.host}: {e}", code=code) from e
        self._ftp = ftp
        self._mlsd_supported = True
        logger.debug("FTP session opened to %s:%d", credentials.host, credentials.port)

    def _sync_list(self, remote_path: str) -> list[RemoteEntry]:
        ftp = self._client()
        if self._mlsd_supported:
            try:
                return self._list_mlsd(ftp, remote_path)
            except ftplib.error_perm as e:
                if _reply_code(e) not in UNSUPPORTED_CODES:
                    raise self._translate(e, f"list {remote_path}") from e
                logger.debug("MLSD unsupported, falling back to NLST")
                self._mlsd_supported = False
            except (ftplib.Error, OSError, EOFError) as e:
                raise self._translate(e, f"list {remote_path}") from e
        return self._list_nlst(ftp, remote_path)

    def _list_mlsd(self, ftp: ftplib.FTP, remote_path: str) -> list[RemoteEntry]:
        entries: list[RemoteEntry] = []
        for name, facts in ftp.mlsd(remote_path, facts=["type", "size", "modify"]):
            kind = facts.get("type", "").lower()
            if name in (".", "..") or kind in ("cdir", "pdir"):
                continue
            size = facts.get("size")
            modify = facts.get("modify")
            entries.append(
                RemoteEntry(
                    name=name,
                    is_directory=kind == "dir",
                    is_file=kind == "file",
                    size=int(size) if size and size.isdigit() else None,
                    modified_at=_parse_timestamp(modify) if modify else None,
                )
            )
        return entries

    def _list_nlst(self, ftp: ftplib.FTP, remote_path: str) -> list[RemoteEntry]:
        names = self._call(f"list {remote_path}", ftp.nlst, remote_path)
        entries: list[RemoteEntry] = []
        for raw in names:
            name = posixpath.basename(raw.rstrip("/"))
            if name in (".", "..", ""):
                continue
            full = posixpath.join(remote_path, name)
            if self._is_directory(ftp, full):
                entries.append(RemoteEntry(name=name, is_directory=True, is_file=False))
                continue
            entries.append(
                RemoteEntry(
                    name=name,
                    is_directory=False,
                    is_file=True,
                    size=self._probe_size(ftp, full),
                    modified_at=self._probe_mtime(ftp, full),
                )
            )
        return entries

    def _is_directory(self, ftp: ftplib.FTP, remote_path: str) -> bool:
        current = self._call("pwd", ftp.pwd)
        try:
            ftp.cwd(remote_path)
        except ftplib.error_perm:
            return False
        except (ftplib.Error, OSError, EOFError) as e:
            raise self._translate(e, f"cwd {remote_path}") from e
        self._call("cwd", ftp.cwd, current)
        return True

    def _probe_size(self, ftp: ftplib.FTP, remote_path: str) -> int | None:
        try:
            return ftp.size(remote_path)
        except ftplib.error_perm:
            return None
        except (ftplib.Error, OSError, EOFError) as e:
            raise self._translate(e, f"size {remote_path}") from e

    def _probe_mtime(self, ftp: ftplib.FTP, remote_path: str) -> float | None:
        try:
            response = ftp.sendcmd(f"MDTM {remote_path}")
        except ftplib.error_perm:
            return None
        except (ftplib.Error, OSError, EOFError) as e:
            raise self._translate(e, f"mdtm {remote_path}") from e
        parts = response.split()
        if len(parts) >= 2 and parts[0] == "213":
            return _parse_timestamp(parts[1])
        return None

    def _sync_upload(self, local_path: Path, remote_path: str) -> None:
        ftp = self._client()
        with open(local_path, "rb") as f:
            self._call(f"upload {remote_path}", ftp.storbinary, f"STOR {remote_path}", f, BLOCK_SIZE)

    def _sync_download(self, local_path: Path, remote_path: str) -> None:
        ftp = self._client()
        with replace_on_success(local_path) as partial, open(partial, "wb") as f:
            self._call(
                f"download {remote_path}",
                ftp.retrbinary,
                f"RETR {remote_path}",
                f.write,
                BLOCK_SIZE,
            )

    def _sync_remove(self, remote_path: str) -> None:
        ftp = self._client()
        self._call(f"remove {remote_path}", ftp.delete, remote_path)

    def _sync_remove_dir(self, remote_path: str) -> None:
        ftp = self._client()
        for entry in self._sync_list(remote_path):
            child = posixpath.join(remote_path, entry.name)
            if entry.is_directory:
                self._sync_remove_dir(child)
            else:
                self._call(f"remove {child}", ftp.delete, child)
        self._call(f"remove directory {remote_path}", ftp.rmd, remote_path)

    def _sync_ensure_dir(self, remote_path: str) -> None:
        ftp = self._client()
        current = "/" if remote_path.startswith("/") else ""
        for part in (p for p in remote_path.split("/") if p):
            current = posixpath.join(current, part) if current else part
            try:
                ftp.mkd(current)
            except ftplib.error_perm:
                # Already exists (or not creatable; the upload will report it)
                continue
            except (ftplib.Error, OSError, EOFError) as e:
                raise self._translate(e, f"mkdir {current}") from e

    def _sync_close(self) -> None:
        if self._ftp is None:
            return
        try:
            self._ftp.quit()
        except (ftplib.Error, OSError, EOFError):
            logger.debug("FTP QUIT failed, closing socket", exc_info=True)
        finally:
            self._drop_connection()
