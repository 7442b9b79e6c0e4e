"""Tests for remote to local tree sync."""

import os
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from smartftp.client.session import ConnectionSession
from smartftp.client.sync.engine import TreeSyncEngine, decide
from smartftp.client.sync.types import LocalEntry, SyncAction, SyncStatus
from smartftp.client.transport import RemoteEntry
from smartftp.core.config import Configuration
from smartftp.core.errors import TransportError
from smartftp.core.types import OperationKind
from tests.client.fakes import FakeRemote, FakeTransport

NOW = 1_700_000_000.0


def remote_file(size: int | None = 10, mtime: float | None = NOW) -> RemoteEntry:
    return RemoteEntry("f", is_directory=False, is_file=True, size=size, modified_at=mtime)


def local_file(size: int = 10, mtime: float = NOW) -> LocalEntry:
    return LocalEntry(is_directory=False, modified_at=mtime, size=size)


REMOTE_DIR = RemoteEntry("d", is_directory=True, is_file=False)
LOCAL_DIR = LocalEntry(is_directory=True, modified_at=NOW, size=0)


class TestDecide:
    """Tests for the per-item comparison."""

    @pytest.mark.parametrize(
        "remote,local,expected",
        [
            (REMOTE_DIR, None, SyncAction.CREATE_LOCAL_DIR),
            (REMOTE_DIR, local_file(), SyncAction.CREATE_LOCAL_DIR),
            (REMOTE_DIR, LOCAL_DIR, SyncAction.SKIP),
            (remote_file(), None, SyncAction.DOWNLOAD_FILE),
            (remote_file(), LOCAL_DIR, SyncAction.SKIP),
            (remote_file(mtime=None), local_file(), SyncAction.DOWNLOAD_FILE),
            (remote_file(mtime=NOW + 5), local_file(), SyncAction.DOWNLOAD_FILE),
            (remote_file(mtime=NOW + 1.5), local_file(), SyncAction.SKIP),
            (remote_file(size=11), local_file(), SyncAction.DOWNLOAD_FILE),
            (remote_file(size=None), local_file(), SyncAction.SKIP),
            (remote_file(mtime=NOW - 100), local_file(), SyncAction.SKIP),
            (remote_file(size=100), local_file(size=100), SyncAction.SKIP),
            (remote_file(size=100, mtime=NOW + 3), local_file(size=100), SyncAction.DOWNLOAD_FILE),
            (remote_file(size=120), local_file(size=100), SyncAction.DOWNLOAD_FILE),
        ],
    )
    def test_decision(self, remote: RemoteEntry, local: LocalEntry | None, expected: SyncAction) -> None:
        """Should pick the action from type, mtime and size."""
        decision = decide("f", remote, local)

        assert decision.action is expected
        assert decision.reason

    def test_custom_tolerance(self) -> None:
        """Should honour the tolerance argument."""
        decision = decide("f", remote_file(mtime=NOW + 1), local_file(), tolerance=0.5)
        assert decision.action is SyncAction.DOWNLOAD_FILE


@pytest.fixture
def session(config: Configuration, transport: FakeTransport) -> ConnectionSession:
    """Session over the fake transport."""
    return ConnectionSession(config, transport_factory=lambda _config: transport, reconnect_delay=0.05)


@pytest.fixture
def status() -> MagicMock:
    """Status listener recording notifications."""
    return MagicMock()


@pytest.fixture
def engine(
    session: ConnectionSession, workspace: Path, config: Configuration, status: MagicMock
) -> TreeSyncEngine:
    """Engine bound to the workspace."""
    return TreeSyncEngine(session, workspace, config, status=status)


class TestSync:
    """Tests for TreeSyncEngine.sync."""

    @pytest.mark.asyncio
    async def test_recursive_sync(
        self,
        session: ConnectionSession,
        engine: TreeSyncEngine,
        workspace: Path,
        remote: FakeRemote,
        status: MagicMock,
    ) -> None:
        """Should mirror files and directories below the remote folder."""
        remote.add_file("/www/site/index.html", b"<html>")
        remote.add_file("/www/site/css/a.css", b"body{}")
        remote.add_dir("/www/site/img")
        await session.connect()

        report = await engine.sync(workspace / "site", "/www/site")

        assert report.status is SyncStatus.COMPLETED
        assert (workspace / "site" / "index.html").read_bytes() == b"<html>"
        assert (workspace / "site" / "css" / "a.css").read_bytes() == b"body{}"
        assert (workspace / "site" / "img").is_dir()
        assert sorted(report.downloaded) == ["/www/site/css/a.css", "/www/site/index.html"]
        assert len(report.created_dirs) == 2
        status.operation_started.assert_any_call(OperationKind.SYNC, "Syncing site...")
        status.operation_succeeded.assert_called_once_with(OperationKind.SYNC, "Synced site")
        assert session.exclusive_operation is None
        await session.close()

    @pytest.mark.asyncio
    async def test_second_run_is_noop(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, remote: FakeRemote
    ) -> None:
        """Should download nothing when the local copy is current."""
        remote.add_file("/www/a.txt", b"aaa", mtime=time.time() - 100)
        remote.add_file("/www/sub/b.txt", b"bbb", mtime=time.time() - 100)
        await session.connect()

        await engine.sync(workspace, "/www")
        report = await engine.sync(workspace, "/www")

        assert report.downloaded == []
        assert sorted(report.skipped) == ["/www/a.txt", "/www/sub/b.txt"]
        await session.close()

    @pytest.mark.asyncio
    async def test_newer_remote_replaces_local(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, remote: FakeRemote
    ) -> None:
        """Should download a file changed on the server."""
        local = workspace / "a.txt"
        local.write_bytes(b"old")
        os.utime(local, (time.time() - 3600, time.time() - 3600))
        remote.add_file("/www/a.txt", b"new")
        await session.connect()

        report = await engine.sync(workspace, "/www")

        assert report.downloaded == ["/www/a.txt"]
        assert local.read_bytes() == b"new"
        await session.close()

    @pytest.mark.asyncio
    async def test_local_files_never_deleted(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, remote: FakeRemote
    ) -> None:
        """Should leave local-only files alone."""
        (workspace / "local-only.txt").write_text("mine")
        remote.add_file("/www/a.txt")
        await session.connect()

        await engine.sync(workspace, "/www")

        assert (workspace / "local-only.txt").read_text() == "mine"
        await session.close()

    @pytest.mark.asyncio
    async def test_ignored_entries_skipped(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, remote: FakeRemote
    ) -> None:
        """Should not download ignored files or enter ignored directories."""
        remote.add_file("/www/.git/config")
        remote.add_file("/www/debug.log")
        remote.add_file("/www/index.html")
        await session.connect()

        report = await engine.sync(workspace, "/www")

        assert report.downloaded == ["/www/index.html"]
        assert not (workspace / ".git").exists()
        assert not (workspace / "debug.log").exists()
        await session.close()

    @pytest.mark.asyncio
    async def test_missing_remote_directory(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path
    ) -> None:
        """Should complete without changes when the remote folder is absent."""
        await session.connect()

        report = await engine.sync(workspace / "nowhere", "/www/nowhere")

        assert report.ok
        assert report.downloaded == []
        assert session.is_connected
        await session.close()

    @pytest.mark.asyncio
    async def test_busy_when_exclusive_held(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, transport: FakeTransport
    ) -> None:
        """Should refuse to start while another operation runs."""
        await session.connect()

        async with session.exclusive("download"):
            report = await engine.sync(workspace, "/www")

        assert report.status is SyncStatus.BUSY
        assert transport.calls.count(("list", "/www")) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_not_connected(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, transport: FakeTransport
    ) -> None:
        """Should report a failed connection."""
        transport.fail("connect", ConnectionRefusedError("refused"))

        report = await engine.sync(workspace, "/www")

        assert report.status is SyncStatus.NOT_CONNECTED
        assert session.exclusive_operation is None
        await session.close()

    @pytest.mark.asyncio
    async def test_connection_lost_midway(
        self,
        session: ConnectionSession,
        engine: TreeSyncEngine,
        workspace: Path,
        remote: FakeRemote,
        transport: FakeTransport,
        status: MagicMock,
    ) -> None:
        """Should abort the run and release exclusivity when the connection drops."""
        remote.add_file("/www/a.txt")
        remote.add_file("/www/b.txt")
        await session.connect()
        transport.fail("download", ConnectionResetError("reset"))

        report = await engine.sync(workspace, "/www")

        assert report.status is SyncStatus.FAILED
        assert report.downloaded == []
        assert len(report.errors) == 1
        assert not (workspace / "b.txt").exists()
        assert session.exclusive_operation is None
        status.operation_failed.assert_called_once()
        await session.close()

    @pytest.mark.asyncio
    async def test_file_error_skipped(
        self,
        session: ConnectionSession,
        engine: TreeSyncEngine,
        workspace: Path,
        remote: FakeRemote,
        transport: FakeTransport,
    ) -> None:
        """Should record a failed file and continue with the rest."""
        remote.add_file("/www/a.txt")
        remote.add_file("/www/b.txt")
        await session.connect()
        transport.fail("download", TransportError("451 Local error in processing", code=451))

        report = await engine.sync(workspace, "/www")

        assert report.ok
        assert report.downloaded == ["/www/b.txt"]
        assert len(report.errors) == 1
        assert "/www/a.txt" in report.errors[0]
        await session.close()


class TestDownload:
    """Tests for TreeSyncEngine.download."""

    @pytest.mark.asyncio
    async def test_overwrites_current_files(
        self,
        session: ConnectionSession,
        engine: TreeSyncEngine,
        workspace: Path,
        remote: FakeRemote,
        status: MagicMock,
    ) -> None:
        """Should download every file even when the local copy looks current."""
        remote.add_file("/www/a.txt", b"srv", mtime=time.time() - 3600)
        (workspace / "a.txt").write_bytes(b"loc")
        await session.connect()

        report = await engine.download(workspace, "/www")

        assert report.downloaded == ["/www/a.txt"]
        assert (workspace / "a.txt").read_bytes() == b"srv"
        status.operation_succeeded.assert_called_once_with(OperationKind.DOWNLOAD, f"Downloaded {workspace.name}")
        await session.close()

    @pytest.mark.asyncio
    async def test_local_directory_kept(
        self, session: ConnectionSession, engine: TreeSyncEngine, workspace: Path, remote: FakeRemote
    ) -> None:
        """Should not replace a local directory with a remote file."""
        remote.add_file("/www/thing", b"file")
        (workspace / "thing").mkdir()
        await session.connect()

        report = await engine.download(workspace, "/www")

        assert report.downloaded == []
        assert (workspace / "thing").is_dir()
        await session.close()
