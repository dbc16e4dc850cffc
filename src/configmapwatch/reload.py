"""Consumers that turn change signals into reloads.

ChangeWatcher subscriptions are persistent. Hosts that expect the one-shot
"fire, then subscribe again on a fresh signal" pattern get it from
on_change(), and JsonFileSource builds a reloadable JSON document on top.
"""

from __future__ import annotations

import copy
import json
import threading
from collections.abc import Callable
from typing import Any

from configmapwatch.logging import get_logger
from configmapwatch.watching.protocols import ChangeSignal, RegistrationHandle
from configmapwatch.watching.registry import WatchRegistry

log = get_logger("reload")

# Separator for nested keys in JsonFileSource.get(), e.g. "Logging:LogLevel"
KEY_DELIMITER = ":"


class ChangeSubscription:
    """Re-subscribing change loop returned by on_change()."""

    def __init__(
        self,
        signal_factory: Callable[[], ChangeSignal],
        consumer: Callable[[], None],
    ) -> None:
        self._signal_factory = signal_factory
        self._consumer = consumer
        self._registration: RegistrationHandle | None = None
        self._disposed = False
        self._lock = threading.Lock()
        self._subscribe()

    @property
    def active(self) -> bool:
        return not self._disposed

    def _subscribe(self) -> None:
        signal = self._signal_factory()
        registration = signal.register_change_callback(self._on_fired, signal)

        with self._lock:
            if self._disposed:
                previous = registration
            else:
                previous, self._registration = self._registration, registration
        if previous is not None:
            previous.dispose()

    def _on_fired(self, _signal: Any) -> None:
        try:
            self._consumer()
        finally:
            if not self._disposed:
                try:
                    self._subscribe()
                except Exception as e:
                    log.warning("Could not re-subscribe for changes: %s", e)
                    self.dispose()

    def dispose(self) -> None:
        """Stop reacting to changes. Idempotent."""
        with self._lock:
            self._disposed = True
            registration, self._registration = self._registration, None
        if registration is not None:
            registration.dispose()


def on_change(
    signal_factory: Callable[[], ChangeSignal],
    consumer: Callable[[], None],
) -> ChangeSubscription:
    """Call ``consumer`` on every change, re-subscribing after each one.

    Args:
        signal_factory: Produces the signal to subscribe to, e.g.
            ``lambda: registry.watch("appsettings.json")``
        consumer: Called with no arguments on each detected change

    Returns:
        A handle whose dispose() stops the loop.
    """
    return ChangeSubscription(signal_factory, consumer)


class JsonFileSource:
    """A JSON document under a WatchRegistry root that reloads on change.

    Example:
        source = JsonFileSource(registry, "appsettings.json")
        source.on_reload(lambda data: print(data["Logging"]))
        level = source.get("Logging:LogLevel:Default", "Information")
    """

    def __init__(
        self,
        registry: WatchRegistry,
        path: str,
        optional: bool = True,
        reload_on_change: bool = True,
    ) -> None:
        """Load the document and optionally start watching it.

        Args:
            registry: Registry whose root the path is relative to
            path: Relative path of the JSON file
            optional: Missing file yields an empty document instead of an error
            reload_on_change: Reload whenever the watched content changes

        Raises:
            FileNotFoundError: If the file is missing and not optional.
            ValueError: If the file does not hold a JSON object.
        """
        self._registry = registry
        self._path = path
        self._optional = optional
        self._data: dict[str, Any] = {}
        self._listeners: list[Callable[[dict[str, Any]], None]] = []
        self._lock = threading.Lock()

        self.load()

        self._subscription: ChangeSubscription | None = None
        if reload_on_change:
            self._subscription = on_change(lambda: registry.watch(path), self._reload)

    @property
    def path(self) -> str:
        return self._path

    @property
    def data(self) -> dict[str, Any]:
        """A copy of the most recently loaded document."""
        with self._lock:
            document = self._data
        return copy.deepcopy(document)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a value by a colon-separated key path.

        Mappings and lists come back as copies, like ``data``.
        """
        with self._lock:
            node: Any = self._data
        for part in key.split(KEY_DELIMITER):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return copy.deepcopy(node)

    def load(self) -> dict[str, Any]:
        """Read and parse the file, replacing the current document.

        Returns:
            A copy of the new document.
        """
        info = self._registry.get_file_info(self._path)
        if not info.exists:
            if not self._optional:
                raise FileNotFoundError(f"Required config file not found: {info.physical_path}")
            data: Any = {}
        else:
            with open(info.physical_path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"{info.physical_path} does not contain a JSON object")

        with self._lock:
            self._data = data
        log.debug("Loaded %s (%d keys)", self._path, len(data))
        return copy.deepcopy(data)

    def _reload(self) -> None:
        try:
            data = self.load()
        except (OSError, ValueError) as e:
            log.warning("Keeping previous %s, reload failed: %s", self._path, e)
            return

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(copy.deepcopy(data))
            except Exception as e:
                log.warning("Reload listener error for %s: %s", self._path, e)

    def on_reload(self, callback: Callable[[dict[str, Any]], None]) -> Callable[[], None]:
        """Register a callback invoked with the new document after each reload.

        Returns:
            A function to unregister the callback.
        """
        with self._lock:
            self._listeners.append(callback)

        def unregister() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unregister

    def close(self) -> None:
        """Stop watching the file."""
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None

    def __enter__(self) -> JsonFileSource:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
