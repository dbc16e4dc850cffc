"""Contracts between the watch registry and its consumers.

Host configuration systems adapt to these protocols rather than to
ChangeWatcher directly.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RegistrationHandle(Protocol):
    """Disposable subscription returned by a ChangeSignal."""

    def dispose(self) -> None:
        """Unsubscribe. Calling twice is a no-op."""
        ...


@runtime_checkable
class ChangeSignal(Protocol):
    """Edge-triggered change signal for one watch target."""

    @property
    def has_changed(self) -> bool:
        """Whether the last poll observed a content transition."""
        ...

    def register_change_callback(
        self, callback: Callable[[Any], None], state: Any = None
    ) -> RegistrationHandle:
        """Subscribe ``callback``; it receives ``state`` on each change."""
        ...
