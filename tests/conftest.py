"""Root pytest configuration for all tests."""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from configmapwatch.config import reset_config


@pytest.fixture(autouse=True)
def _isolate_config_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep env overrides and the config cache from leaking between tests."""
    for var in ("CMW_ROOT", "CMW_POLL_INTERVAL_MS", "CMW_LOG"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """A directory standing in for a mounted config volume."""
    root = tmp_path / "config"
    root.mkdir()
    return root


@pytest.fixture
def settings_file(config_dir: Path) -> Path:
    """A JSON settings file inside the config directory."""
    path = config_dir / "appsettings.json"
    path.write_text('{"level":"Error"}')
    return path


class CallbackRecorder:
    """Thread-safe callback that records each invocation's state."""

    def __init__(self) -> None:
        self.calls: list[object] = []
        self._lock = threading.Lock()
        self._event = threading.Event()

    def __call__(self, state: object) -> None:
        with self._lock:
            self.calls.append(state)
        self._event.set()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.calls)

    def wait(self, timeout: float = 2.0) -> bool:
        """Wait for the next invocation."""
        fired = self._event.wait(timeout)
        self._event.clear()
        return fired


@pytest.fixture
def recorder() -> Callable[[], CallbackRecorder]:
    """Factory for CallbackRecorder instances."""
    return CallbackRecorder


@pytest.fixture
def swap_symlink() -> Callable[[Path, str], None]:
    """Atomically repoint a symlink, the way kubelet updates ConfigMap volumes."""

    def swap(link: Path, target: str) -> None:
        tmp = link.with_name(link.name + ".tmp")
        os.symlink(target, tmp)
        os.replace(tmp, link)

    return swap


@pytest.fixture
def write_atomic() -> Callable[[Path, str], None]:
    """Replace a file's content in one step so a poll never sees a partial write."""

    def write(path: Path, text: str) -> None:
        tmp = path.with_name(path.name + ".new")
        tmp.write_text(text)
        os.replace(tmp, path)

    return write


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout expires."""

    def wait(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return wait
