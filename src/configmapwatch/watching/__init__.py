"""Content-based file watching.

Provides polling watchers that fingerprint file content, for files whose
metadata stays fixed while the content behind them changes (ConfigMap
volumes, symlink swaps, bind mounts).
"""

from configmapwatch.watching.files import DirectoryContents, FileInfo
from configmapwatch.watching.protocols import ChangeSignal, RegistrationHandle
from configmapwatch.watching.registry import WatchRegistry
from configmapwatch.watching.watcher import (
    DEFAULT_POLL_INTERVAL_MS,
    CallbackRegistration,
    ChangeWatcher,
    WatcherState,
    compute_fingerprint,
)

__all__ = [
    "DEFAULT_POLL_INTERVAL_MS",
    "CallbackRegistration",
    "ChangeSignal",
    "ChangeWatcher",
    "DirectoryContents",
    "FileInfo",
    "RegistrationHandle",
    "WatchRegistry",
    "WatcherState",
    "compute_fingerprint",
]
