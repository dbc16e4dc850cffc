"""Config file watcher for automatic reload on changes.

Config files may themselves be mounted from a ConfigMap, so this uses
content fingerprints (ChangeWatcher) rather than modification times.
"""

from __future__ import annotations

import logging
from pathlib import Path

from configmapwatch.config.loader import reload_config
from configmapwatch.config.paths import get_config_paths
from configmapwatch.watching.watcher import CallbackRegistration, ChangeWatcher

_log = logging.getLogger("configmapwatch.config.watcher")

# Default poll interval in milliseconds
DEFAULT_CONFIG_POLL_INTERVAL_MS = 2_000


class ConfigWatcher:
    """Watches config files for content changes and triggers reload.

    A config file that does not exist at start() is not polled: its
    ChangeWatcher stays inert, so creating the file later goes unnoticed
    until refresh() is called (or the watcher is restarted). refresh()
    starts polling any such file that has appeared since and reloads the
    config once for it.
    """

    def __init__(
        self,
        project_root: str | Path | None = None,
        poll_interval_ms: int = DEFAULT_CONFIG_POLL_INTERVAL_MS,
    ) -> None:
        """Initialize the config watcher.

        Args:
            project_root: Optional project directory to watch.
            poll_interval_ms: How often to check for changes.
        """
        self._project_root = project_root
        self._poll_interval_ms = poll_interval_ms
        self._watchers: list[ChangeWatcher] = []
        self._registrations: list[CallbackRegistration] = []

    @property
    def running(self) -> bool:
        return bool(self._watchers)

    @property
    def watched_paths(self) -> list[Path]:
        return [w.full_path for w in self._watchers if w.is_running]

    def _on_change(self, path: Path) -> None:
        _log.info("Config changed: %s", path)
        try:
            reload_config(project_root=self._project_root)
        except Exception as e:
            _log.error("Error reloading config: %s", e)

    def start(self) -> None:
        """Start watching every config file that currently exists."""
        if self._watchers:
            return

        for path in get_config_paths(self._project_root):
            watcher = ChangeWatcher(path.parent, path.name, self._poll_interval_ms)
            watcher.ensure_started()
            self._registrations.append(
                watcher.register_change_callback(self._on_change, path)
            )
            self._watchers.append(watcher)

        _log.debug(
            "Config watcher started (%d file(s), interval=%dms)",
            len(self.watched_paths),
            self._poll_interval_ms,
        )

    def refresh(self) -> list[Path]:
        """Start watching config files created since start().

        Returns:
            The newly watched paths. If there are any, the config is
            reloaded once to pick them up.
        """
        started: list[Path] = []
        for watcher in self._watchers:
            if watcher.is_running:
                continue
            watcher.ensure_started()
            if watcher.is_running:
                started.append(watcher.full_path)

        if started:
            _log.info("Watching new config file(s): %s", ", ".join(map(str, started)))
            self._on_change(started[0])
        return started

    def stop(self) -> None:
        """Stop watching for config changes."""
        for registration in self._registrations:
            registration.dispose()
        for watcher in self._watchers:
            watcher.dispose()
        self._registrations.clear()
        self._watchers.clear()
        _log.debug("Config watcher stopped")

    def __enter__(self) -> ConfigWatcher:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
