"""Tests for local to remote path mapping."""

from pathlib import Path

import pytest

from smartftp.client.sync.paths import (
    is_in_workspace,
    normalize_remote_path,
    relative_path,
    remote_dirname,
    remote_join,
    to_remote_path,
)


class TestNormalizeRemotePath:
    """Tests for normalize_remote_path."""

    def test_backslashes_become_slashes(self) -> None:
        """Should rewrite Windows separators."""
        assert normalize_remote_path("\\www\\css\\site.css") == "/www/css/site.css"

    def test_repeated_slashes_collapse(self) -> None:
        """Should collapse runs of slashes."""
        assert normalize_remote_path("//www///css//a.css") == "/www/css/a.css"


class TestToRemotePath:
    """Tests for to_remote_path."""

    def test_nested_file(self, tmp_path: Path) -> None:
        """Should join the relative path onto the remote root."""
        local = tmp_path / "css" / "site.css"
        assert to_remote_path(local, tmp_path, "/var/www") == "/var/www/css/site.css"

    def test_trailing_slash_on_root(self, tmp_path: Path) -> None:
        """Should not produce a double slash."""
        assert to_remote_path(tmp_path / "a.txt", tmp_path, "/var/www/") == "/var/www/a.txt"

    def test_remote_root_slash(self, tmp_path: Path) -> None:
        """Should map into a / remote root."""
        assert to_remote_path(tmp_path / "a.txt", tmp_path, "/") == "/a.txt"

    def test_workspace_root_itself(self, tmp_path: Path) -> None:
        """Should map the workspace root to the remote root."""
        assert to_remote_path(tmp_path, tmp_path, "/var/www") == "/var/www"

    def test_outside_workspace_raises(self, tmp_path: Path) -> None:
        """Should refuse paths outside the workspace."""
        with pytest.raises(ValueError):
            to_remote_path(tmp_path.parent / "other.txt", tmp_path, "/www")


class TestWorkspaceMembership:
    """Tests for is_in_workspace and relative_path."""

    def test_inside(self, tmp_path: Path) -> None:
        """Should accept nested paths."""
        assert is_in_workspace(tmp_path / "a" / "b.txt", tmp_path) is True

    def test_outside(self, tmp_path: Path) -> None:
        """Should reject siblings of the workspace."""
        assert is_in_workspace(tmp_path.parent / "elsewhere", tmp_path) is False

    def test_no_workspace(self, tmp_path: Path) -> None:
        """Should reject everything without a workspace."""
        assert is_in_workspace(tmp_path / "a.txt", None) is False

    def test_relative_path_uses_forward_slashes(self, tmp_path: Path) -> None:
        """Should return a POSIX relative path."""
        assert relative_path(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"


class TestRemoteHelpers:
    """Tests for remote_join and remote_dirname."""

    def test_join(self) -> None:
        """Should join a directory and a name."""
        assert remote_join("/www", "index.html") == "/www/index.html"

    def test_join_root(self) -> None:
        """Should join onto the root without doubling slashes."""
        assert remote_join("/", "index.html") == "/index.html"

    def test_dirname(self) -> None:
        """Should return the parent directory."""
        assert remote_dirname("/www/css/site.css") == "/www/css"
