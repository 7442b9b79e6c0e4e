"""Local to remote synchronization.

Architecture:
    FileWatcher → ChangeCoalescer → TransferQueue → ConnectionSession → server
                                                          ▲
                                   TreeSyncEngine ────────┘ (on demand)

Components:
- **FileWatcher**: watchdog observer for the workspace
- **ChangeCoalescer**: Per-path debounce of watcher events, save bypass
- **TransferQueue**: Ordered uploads with retry at the head of the queue
- **TreeSyncEngine**: Remote to local diff sync and full download
- **IgnorePatterns** / paths: Ignore rules and local to remote path mapping
"""

from smartftp.client.sync.coalescer import DEFAULT_DEBOUNCE_DELAY, ChangeCoalescer
from smartftp.client.sync.engine import MTIME_TOLERANCE, TreeSyncEngine, decide
from smartftp.client.sync.ignore import DEFAULT_IGNORE_PATTERNS, IgnorePatterns, should_ignore
from smartftp.client.sync.paths import (
    is_in_workspace,
    normalize_remote_path,
    relative_path,
    remote_dirname,
    remote_join,
    to_remote_path,
)
from smartftp.client.sync.queue import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, TransferQueue
from smartftp.client.sync.types import (
    LocalEntry,
    QueueStats,
    SyncAction,
    SyncDecision,
    SyncReport,
    SyncStatus,
    TransferTask,
)
from smartftp.client.sync.watcher import FileWatcher, matches_watch_glob

__all__ = [
    "DEFAULT_DEBOUNCE_DELAY",
    "DEFAULT_IGNORE_PATTERNS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "MTIME_TOLERANCE",
    "ChangeCoalescer",
    "FileWatcher",
    "IgnorePatterns",
    "LocalEntry",
    "QueueStats",
    "SyncAction",
    "SyncDecision",
    "SyncReport",
    "SyncStatus",
    "TransferQueue",
    "TransferTask",
    "TreeSyncEngine",
    "decide",
    "is_in_workspace",
    "matches_watch_glob",
    "normalize_remote_path",
    "relative_path",
    "remote_dirname",
    "remote_join",
    "should_ignore",
    "to_remote_path",
]
