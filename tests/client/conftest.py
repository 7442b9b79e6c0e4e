"""Shared fixtures for client tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from smartftp.core.config import Configuration, Protocol, WatcherConfig
from tests.client.fakes import REMOTE_ROOT, FakeRemote, FakeTransport


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create an empty workspace directory."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def config() -> Configuration:
    """Configuration mapping the workspace to /www."""
    return Configuration(
        host="ftp.example.com",
        protocol=Protocol.FTP,
        port=21,
        username="deploy",
        password="secret",
        remote_path=REMOTE_ROOT,
        watcher=WatcherConfig(auto_delete=True, ignore_delete=False),
    )


@pytest.fixture
def remote() -> FakeRemote:
    """Create a remote tree holding only the workspace root."""
    return FakeRemote()


@pytest.fixture
def transport(remote: FakeRemote) -> FakeTransport:
    """Create a fake transport over the remote tree."""
    return FakeTransport(remote)
