"""Content-fingerprint change watcher.

ConfigMap volumes (and other symlinked or bind-mounted files) swap the
content behind a path without touching the path's own metadata, so mtime
polling and inotify both miss updates. ChangeWatcher instead re-reads the
file on a fixed interval, hashes the bytes, and notifies subscribers when
the hash moves.

Example:
    watcher = ChangeWatcher("/etc/app/config", "appsettings.json", 5000)
    watcher.ensure_started()

    def on_change(state: object) -> None:
        print(f"{state} changed")

    registration = watcher.register_change_callback(on_change, "appsettings")
    ...
    registration.dispose()
    watcher.dispose()
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from configmapwatch.errors import WatcherDisposedError
from configmapwatch.logging import TRACE, get_logger

log = get_logger("watching")

# Default poll interval in milliseconds
DEFAULT_POLL_INTERVAL_MS = 30_000

_READ_CHUNK_SIZE = 64 * 1024

ChangeCallback = Callable[[Any], None]


class WatcherState(Enum):
    """Lifecycle of a ChangeWatcher."""

    CREATED = "created"
    STARTED = "started"
    DISPOSED = "disposed"


def compute_fingerprint(path: Path) -> str:
    """Hash the full content of a file.

    Args:
        path: File to read

    Returns:
        Hex SHA-256 digest of the file bytes

    Raises:
        OSError: If the file cannot be opened or read
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_READ_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def normalize_filter(filter: str) -> str:
    """Strip leading separators so the filter always joins under the root."""
    return filter.lstrip("/\\")


class CallbackRegistration:
    """Handle for a single change callback.

    Disposing the handle unregisters the callback exactly once. The watcher
    only owns this record, never the subscriber itself.
    """

    def __init__(
        self,
        callback: ChangeCallback,
        state: Any,
        unregister: Callable[[CallbackRegistration], None],
    ) -> None:
        self._callback: ChangeCallback | None = callback
        self._state = state
        self._unregister: Callable[[CallbackRegistration], None] | None = unregister
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        """True until dispose() has been called."""
        return self._unregister is not None

    def notify(self) -> None:
        """Invoke the callback with its original state."""
        callback = self._callback
        state = self._state
        if callback is not None:
            callback(state)

    def dispose(self) -> None:
        """Unregister the callback. Safe to call more than once."""
        with self._lock:
            unregister, self._unregister = self._unregister, None
        if unregister is not None:
            unregister(self)
            self._callback = None
            self._state = None

    def __enter__(self) -> CallbackRegistration:
        return self

    def __exit__(self, *args: object) -> None:
        self.dispose()


class ChangeWatcher:
    """Watches a single file for content changes using polling.

    One background thread per started watcher re-reads the file every
    poll_interval_ms, fingerprints it and compares against the previous
    cycle. The first successful read only establishes the baseline.

    has_changed is edge-triggered: it is True only for the cycle that
    observed the transition and drops back to False on the next cycle
    that reads the same content.
    """

    def __init__(
        self,
        root_path: str | Path,
        filter: str,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        """Initialize the watcher. Does not touch the filesystem.

        Args:
            root_path: Directory the filter is resolved against
            filter: Relative path of the watched file
            poll_interval_ms: Milliseconds between polling cycles
        """
        if poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got {poll_interval_ms}")

        self._root_path = Path(root_path)
        self._filter = normalize_filter(filter)
        self._poll_interval_ms = poll_interval_ms

        # Change state, written only by the poll thread
        self._last_fingerprint: str | None = None
        self._has_changed = False

        # Subscribers; None once disposed
        self._registrations: list[CallbackRegistration] | None = []
        self._registrations_lock = threading.Lock()

        # Lifecycle
        self._state = WatcherState.CREATED
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._lifecycle_lock = threading.Lock()

        log.debug("New watcher for %s", self._filter)

    @property
    def root_path(self) -> Path:
        return self._root_path

    @property
    def filter(self) -> str:
        return self._filter

    @property
    def full_path(self) -> Path:
        """Resolved path of the watched file (root + filter)."""
        return self._root_path / self._filter

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_interval_ms

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_running(self) -> bool:
        """True while the poll thread is alive and not asked to stop."""
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    @property
    def last_fingerprint(self) -> str | None:
        return self._last_fingerprint

    @property
    def has_changed(self) -> bool:
        """Edge flag from the most recently completed poll cycle."""
        return self._has_changed

    @property
    def subscriber_count(self) -> int:
        with self._registrations_lock:
            return len(self._registrations) if self._registrations is not None else 0

    def ensure_started(self) -> None:
        """Start the polling thread if it is not already running.

        If the file does not exist yet the watcher stays inert and no
        thread is created. Calling this again later re-checks the path.

        Raises:
            WatcherDisposedError: If the watcher has been disposed.
        """
        with self._lifecycle_lock:
            if self._state is WatcherState.DISPOSED:
                raise WatcherDisposedError(f"Watcher for {self._filter} has been disposed")
            if self._thread is not None:
                return

            full_path = self.full_path
            if not full_path.is_file():
                log.debug("Not watching %s: file does not exist", full_path)
                return

            thread = threading.Thread(
                target=self._poll_loop,
                name=f"configmapwatch:{self._filter}",
                daemon=True,
            )
            # Left in CREATED if the thread cannot be started, so a later call retries
            thread.start()
            self._thread = thread
            self._state = WatcherState.STARTED
            log.debug(
                "Watcher started for %s (interval: %dms)", full_path, self._poll_interval_ms
            )

    def _poll_loop(self) -> None:
        """Poll immediately, then once per interval until stopped."""
        interval = self._poll_interval_ms / 1000.0
        while not self._stop_event.is_set():
            try:
                self._check_for_changes()
            except Exception:
                log.exception("Unexpected error while checking %s", self.full_path)

            if self._stop_event.wait(interval):
                break
        log.debug("Watcher loop for %s exited", self._filter)

    def _check_for_changes(self) -> None:
        """Run one poll cycle.

        A read failure skips the cycle: the previous fingerprint is kept and
        no notification fires.
        """
        full_path = self.full_path
        log.log(TRACE, "Checking for changes in %s", full_path)

        try:
            fingerprint = compute_fingerprint(full_path)
        except OSError as e:
            log.warning("Could not read %s: %s", full_path, e)
            return

        changed = self._last_fingerprint is not None and self._last_fingerprint != fingerprint
        self._has_changed = changed
        self._last_fingerprint = fingerprint

        if changed:
            log.info("File %s was modified", full_path)
            self._notify_all()

    def _notify_all(self) -> None:
        """Invoke every callback registered at the start of this pass."""
        with self._registrations_lock:
            if self._registrations is None:
                return
            registrations = list(self._registrations)

        for registration in registrations:
            try:
                registration.notify()
            except Exception as e:
                log.error(
                    "Error in change callback for %s: %s", self._filter, e, exc_info=True
                )

    def register_change_callback(
        self, callback: ChangeCallback, state: Any = None
    ) -> CallbackRegistration:
        """Register a callback invoked on every detected change.

        Args:
            callback: Called with ``state`` when the content changes
            state: Opaque value passed back to the callback

        Returns:
            A CallbackRegistration; dispose it to unsubscribe.

        Raises:
            WatcherDisposedError: If the watcher has been disposed.
        """
        registration = CallbackRegistration(callback, state, self._unregister)
        with self._registrations_lock:
            if self._registrations is None:
                raise WatcherDisposedError(f"Watcher for {self._filter} has been disposed")
            self._registrations.append(registration)
        return registration

    def _unregister(self, registration: CallbackRegistration) -> None:
        with self._registrations_lock:
            if self._registrations is not None and registration in self._registrations:
                self._registrations.remove(registration)

    def dispose(self) -> None:
        """Stop polling and drop all subscribers. Idempotent.

        An in-flight poll is not interrupted, but it will not notify anyone
        and no further cycles are scheduled.
        """
        with self._registrations_lock:
            self._registrations = None

        with self._lifecycle_lock:
            if self._state is WatcherState.DISPOSED:
                return
            self._state = WatcherState.DISPOSED
            self._stop_event.set()
            self._thread = None

        log.debug("Watcher for %s disposed", self._filter)

    close = dispose

    def __enter__(self) -> ChangeWatcher:
        return self

    def __exit__(self, *args: object) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"ChangeWatcher({str(self.full_path)!r}, state={self._state.value})"
