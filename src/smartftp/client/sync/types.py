"""Shared types and dataclasses for sync operations.

This module provides:
- TransferTask: One pending upload in the transfer queue
- LocalEntry: Stat snapshot of a local directory entry
- SyncAction, SyncDecision: Per-item outcome of a tree comparison
- SyncStatus, SyncReport: Result of a sync or download run
- QueueStats: Counters kept by the transfer queue
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass
class TransferTask:
    """A queued upload.

    Identity is the local path: the queue never holds two tasks for the
    same file.

    Attributes:
        local_path: Absolute local file path.
        remote_path: Destination path on the server.
        retry_count: Failed attempts so far (0 on first attempt).
        enqueued_at: When the task was created (Unix timestamp).
    """

    local_path: Path
    remote_path: str
    retry_count: int = 0
    enqueued_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class LocalEntry:
    """Local counterpart of a remote entry."""

    is_directory: bool
    modified_at: float
    size: int


class SyncAction(Enum):
    """What to do with one compared item."""

    SKIP = "skip"
    CREATE_LOCAL_DIR = "create_local_dir"
    DOWNLOAD_FILE = "download_file"


@dataclass(frozen=True)
class SyncDecision:
    """Decision for one remote item.

    Attributes:
        name: Entry name within its directory.
        action: The action to take.
        reason: Human readable explanation, used in logs.
    """

    name: str
    action: SyncAction
    reason: str


class SyncStatus(Enum):
    """Overall outcome of a sync or download run."""

    COMPLETED = "completed"
    BUSY = "busy"  # Another exclusive operation was running
    NOT_CONNECTED = "not_connected"
    FAILED = "failed"


@dataclass
class SyncReport:
    """Result of a sync or download run."""

    status: SyncStatus = SyncStatus.COMPLETED
    downloaded: list[str] = field(default_factory=list)
    created_dirs: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    decisions: list[SyncDecision] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True if the run completed (item level errors are allowed)."""
        return self.status is SyncStatus.COMPLETED

    def summary(self) -> str:
        """Get a one-line summary of the run."""
        parts = [f"{len(self.downloaded)} downloaded"]
        if self.created_dirs:
            parts.append(f"{len(self.created_dirs)} directories created")
        if self.skipped:
            parts.append(f"{len(self.skipped)} up to date")
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        return ", ".join(parts)


@dataclass
class QueueStats:
    """Counters for the transfer queue."""

    uploaded: int = 0
    failed: int = 0
    retried: int = 0
    dropped: int = 0  # Local file vanished before upload
