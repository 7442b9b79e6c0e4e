"""Local to remote path mapping.

Remote paths are always POSIX style: forward slashes, rooted at the
configured remote directory. Local paths are handled with pathlib.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePosixPath

_MULTI_SLASH = re.compile(r"/+")


def normalize_remote_path(remote_path: str) -> str:
    """Rewrite backslashes to slashes and collapse repeated slashes."""
    return _MULTI_SLASH.sub("/", remote_path.replace("\\", "/"))


def relative_path(path: str | Path, workspace_root: str | Path) -> str:
    """Get the workspace-relative path of ``path`` with forward slashes.

    Raises:
        ValueError: If ``path`` is not inside ``workspace_root``.
    """
    rel = Path(path).relative_to(Path(workspace_root))
    return rel.as_posix()


def is_in_workspace(path: str | Path, workspace_root: str | Path | None) -> bool:
    """Check whether ``path`` lies inside the workspace root."""
    if workspace_root is None:
        return False
    try:
        Path(path).relative_to(Path(workspace_root))
    except ValueError:
        return False
    return True


def to_remote_path(
    local_path: str | Path,
    workspace_root: str | Path,
    remote_root: str,
) -> str:
    """Map a local path to its remote counterpart.

    Args:
        local_path: Absolute local path inside the workspace.
        workspace_root: Local directory mapped to ``remote_root``.
        remote_root: Remote directory of the workspace.

    Returns:
        POSIX remote path, e.g. ``/var/www/css/site.css``.

    Raises:
        ValueError: If ``local_path`` is outside the workspace.
    """
    rel = relative_path(local_path, workspace_root)
    remote = posixpath.join(normalize_remote_path(remote_root), "" if rel == "." else rel)
    return normalize_remote_path(posixpath.normpath(remote))


def remote_join(base: str, name: str) -> str:
    """Join a remote directory and an entry name."""
    return str(PurePosixPath(normalize_remote_path(base) or "/") / name)


def remote_dirname(remote_path: str) -> str:
    """Get the parent directory of a remote path."""
    return posixpath.dirname(normalize_remote_path(remote_path))
