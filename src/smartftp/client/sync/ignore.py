"""Ignore patterns for file synchronization.

This module provides:
- IgnorePatterns: Matches paths against built-in and configured patterns
- DEFAULT_IGNORE_PATTERNS: Paths that are never transferred
- should_ignore: Functional shortcut used by one-off callers

The same matcher is used for uploads, watcher events and sync
comparisons, so a path ignored in one place is ignored everywhere.

Pattern syntax:
- ``*`` matches anything within a path segment
- ``**`` matches across segments
- a trailing ``/`` matches the relative path by prefix (``dist/``)
- anything else must equal the basename, the relative path, or one of
  the ancestor directory names when it contains no ``/``
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from smartftp.core.config import CONFIG_FILENAME

DEFAULT_IGNORE_PATTERNS = (
    ".git",
    ".vscode",
    "node_modules",
    ".DS_Store",
    "Thumbs.db",
    ".env",
    "*.log",
    CONFIG_FILENAME,
)


def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern; only ``*`` and ``**`` are special."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".+")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


class IgnorePatterns:
    """Handles ignore pattern matching for file paths."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Extra patterns added to DEFAULT_IGNORE_PATTERNS.
        """
        self._patterns: list[str] = list(DEFAULT_IGNORE_PATTERNS)
        self._regexes: dict[str, re.Pattern[str]] = {}
        for pattern in patterns or ():
            self.add_pattern(pattern)

    @property
    def patterns(self) -> tuple[str, ...]:
        """Get all active patterns."""
        return tuple(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an ignore pattern. Empty patterns are skipped."""
        pattern = pattern.strip()
        if pattern:
            self._patterns.append(pattern)

    def _regex(self, pattern: str) -> re.Pattern[str]:
        regex = self._regexes.get(pattern)
        if regex is None:
            regex = self._regexes[pattern] = _glob_to_regex(pattern)
        return regex

    def _matches(self, pattern: str, name: str, rel_path: str, ancestors: list[str]) -> bool:
        if name == pattern or rel_path == pattern:
            return True

        if pattern.endswith("/") and "*" in pattern:
            regex = self._regex(pattern.rstrip("/"))
            segments = rel_path.split("/")
            return any(regex.match("/".join(segments[:i])) for i in range(1, len(segments) + 1))

        if "*" in pattern:
            regex = self._regex(pattern)
            if regex.match(name) or regex.match(rel_path):
                return True
            # Contents of an ignored directory are ignored too
            return "/" not in pattern and any(regex.match(a) for a in ancestors)

        if pattern.endswith("/"):
            return (rel_path + "/").startswith(pattern)

        return "/" not in pattern and pattern in ancestors

    def should_ignore(self, path: str | Path, workspace_root: str | Path | None = None) -> bool:
        """Check if a path should be ignored.

        Args:
            path: Local path to check.
            workspace_root: Workspace root; when the path is outside it (or
                it is None) only the basename is matched.

        Returns:
            True if the path should be ignored.
        """
        path = Path(path)
        name = path.name
        rel_path = name
        ancestors: list[str] = []

        if workspace_root is not None:
            try:
                rel = path.relative_to(Path(workspace_root))
            except ValueError:
                pass
            else:
                rel_path = rel.as_posix()
                ancestors = list(rel.parts[:-1])

        return any(self._matches(p, name, rel_path, ancestors) for p in self._patterns)


def should_ignore(
    path: str | Path,
    extra_patterns: Iterable[str] | None = None,
    workspace_root: str | Path | None = None,
) -> bool:
    """Check a path against the default and ``extra_patterns`` ignore rules."""
    return IgnorePatterns(extra_patterns).should_ignore(path, workspace_root)
