"""Registry of change watchers for files under one root directory.

The registry hands out at most one live ChangeWatcher per relative path and
makes sure it is started before returning it. It has an explicit lifetime:
whoever creates it is responsible for calling close().
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from configmapwatch.errors import RegistryClosedError
from configmapwatch.logging import get_logger
from configmapwatch.watching.files import DirectoryContents, FileInfo
from configmapwatch.watching.watcher import (
    DEFAULT_POLL_INTERVAL_MS,
    ChangeWatcher,
    WatcherState,
    normalize_filter,
)

if TYPE_CHECKING:
    from configmapwatch.config.schema import WatchConfig

log = get_logger("registry")


class WatchRegistry:
    """Creates, replaces and starts ChangeWatchers on demand.

    Example:
        with WatchRegistry("/etc/app/config", poll_interval_ms=5000) as registry:
            watcher = registry.watch("appsettings.json")
            watcher.register_change_callback(lambda _: reload())
    """

    def __init__(
        self,
        root_path: str | Path,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        """Initialize the registry.

        Args:
            root_path: Directory watched filters are resolved against
            poll_interval_ms: Poll interval for watchers this registry creates

        Raises:
            ValueError: If root_path is empty or blank
        """
        if root_path is None or not str(root_path).strip():
            raise ValueError("Invalid root path")

        self._root_path = Path(root_path)
        self._poll_interval_ms = poll_interval_ms
        self._watchers: dict[str, ChangeWatcher] = {}
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def from_relative_path(
        cls,
        sub_path: str,
        base_dir: str | Path | None = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> WatchRegistry | None:
        """Build a registry for a directory next to the running program.

        Args:
            sub_path: Directory relative to base_dir
            base_dir: Defaults to the directory of the entry script
            poll_interval_ms: Poll interval for created watchers

        Returns:
            A registry, or None if the directory does not exist.
        """
        if base_dir is None:
            entry = sys.argv[0] if sys.argv and sys.argv[0] else ""
            base_dir = Path(entry).resolve().parent if entry else Path.cwd()

        config_path = Path(base_dir) / sub_path
        if config_path.is_dir():
            return cls(config_path, poll_interval_ms=poll_interval_ms)

        log.debug("Config directory %s does not exist", config_path)
        return None

    @classmethod
    def from_config(cls, config: WatchConfig) -> WatchRegistry:
        """Build a registry from a WatchConfig and start watching its files.

        Every entry of ``config.files`` gets a watcher right away, so a
        consumer subscribing later already has a baseline to compare against.
        Listed files that do not exist yet stay inert.

        Raises:
            ValueError: If the config has no root.
        """
        registry = cls(config.root or "", poll_interval_ms=config.poll_interval_ms)
        for filter in config.files:
            registry.watch(filter)
        return registry

    @property
    def root_path(self) -> Path:
        return self._root_path

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_interval_ms

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._watchers)

    def __contains__(self, filter: object) -> bool:
        if not isinstance(filter, str):
            return False
        with self._lock:
            return normalize_filter(filter) in self._watchers

    def get(self, filter: str) -> ChangeWatcher | None:
        """Return the current watcher for a filter without creating one."""
        with self._lock:
            return self._watchers.get(normalize_filter(filter))

    def watch(self, filter: str, replace: bool = False) -> ChangeWatcher:
        """Get a started watcher for a path relative to the root.

        An existing live watcher is returned as-is unless ``replace`` is set,
        in which case it is disposed (its subscribers stop receiving
        notifications) and a fresh one with no baseline takes its place.

        Args:
            filter: Path relative to the registry root
            replace: Dispose any existing watcher and start over

        Returns:
            The live watcher, already started (or inert if the file is absent).

        Raises:
            RegistryClosedError: If close() has been called.
        """
        key = normalize_filter(filter)

        with self._lock:
            if self._closed:
                raise RegistryClosedError(f"Registry for {self._root_path} is closed")

            watcher = self._watchers.get(key)
            if watcher is not None and replace:
                log.debug("Replacing watcher for %s", key)
                watcher.dispose()
                watcher = None
            elif watcher is not None and watcher.state is WatcherState.DISPOSED:
                watcher = None

            if watcher is None:
                watcher = ChangeWatcher(self._root_path, key, self._poll_interval_ms)
                self._watchers[key] = watcher

            watcher.ensure_started()
            return watcher

    def get_file_info(self, subpath: str) -> FileInfo:
        """Stat a path under the root."""
        return FileInfo.from_path(self._root_path / normalize_filter(subpath))

    def get_directory_contents(self, subpath: str = "") -> DirectoryContents:
        """List a directory under the root."""
        return DirectoryContents.from_path(self._root_path / normalize_filter(subpath))

    def close(self) -> None:
        """Dispose every watcher. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            watchers = list(self._watchers.values())
            self._watchers.clear()

        for watcher in watchers:
            watcher.dispose()
        log.debug("Registry for %s closed (%d watchers)", self._root_path, len(watchers))

    def __enter__(self) -> WatchRegistry:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
