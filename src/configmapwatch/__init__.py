"""configmapwatch: content-based change detection for mounted config files.

Kubernetes ConfigMap volumes swap a symlink target on update, so the watched
path's mtime never moves and inotify sees nothing. configmapwatch polls the
file content instead and raises an edge-triggered change signal.
"""

from configmapwatch.errors import (
    ConfigMapWatchError,
    RegistryClosedError,
    WatcherDisposedError,
)
from configmapwatch.reload import ChangeSubscription, JsonFileSource, on_change
from configmapwatch.watching import (
    DEFAULT_POLL_INTERVAL_MS,
    CallbackRegistration,
    ChangeSignal,
    ChangeWatcher,
    DirectoryContents,
    FileInfo,
    RegistrationHandle,
    WatcherState,
    WatchRegistry,
    compute_fingerprint,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Watching
    "DEFAULT_POLL_INTERVAL_MS",
    "CallbackRegistration",
    "ChangeSignal",
    "ChangeWatcher",
    "RegistrationHandle",
    "WatchRegistry",
    "WatcherState",
    "compute_fingerprint",
    # Filesystem passthroughs
    "DirectoryContents",
    "FileInfo",
    # Consumers
    "ChangeSubscription",
    "JsonFileSource",
    "on_change",
    # Errors
    "ConfigMapWatchError",
    "RegistryClosedError",
    "WatcherDisposedError",
]
