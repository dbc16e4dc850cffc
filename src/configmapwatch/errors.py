"""Exception types raised by configmapwatch."""

from __future__ import annotations


class ConfigMapWatchError(Exception):
    """Base class for configmapwatch errors."""

    pass


class WatcherDisposedError(ConfigMapWatchError, RuntimeError):
    """Operation attempted on a watcher that has already been disposed.

    Raised when:
    - A change callback is registered after dispose()
    - ensure_started() is called after dispose()
    """

    pass


class RegistryClosedError(WatcherDisposedError):
    """Operation attempted on a WatchRegistry after close()."""

    pass
