"""Tests for infrastructure components (config watcher, logging).

Tests coverage for:
- src/configmapwatch/config/watcher.py
- src/configmapwatch/logging.py
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest

import configmapwatch.logging as logging_module
from configmapwatch.config.schema import LoggingConfig
from configmapwatch.config.watcher import ConfigWatcher
from configmapwatch.logging import TRACE, VERBOSE, get_logger, resolve_level, setup_logging

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_log_file(tmp_path: Path) -> str:
    """Create a temporary log file path."""
    return str(tmp_path / "test.log")


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file."""
    config_dir = tmp_path / ".cmw"
    config_dir.mkdir()
    config_file = config_dir / "config.yaml"
    config_file.write_text("watch:\n  root: /etc/app\n")
    return config_file


@pytest.fixture
def fresh_logging(monkeypatch: pytest.MonkeyPatch):
    """Start without a package handler and remove whatever setup_logging adds."""
    logger = get_logger()
    handlers = list(logger.handlers)
    level = logger.level
    monkeypatch.setattr(logging_module, "_handler", None)
    yield logger
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


# =============================================================================
# Config Watcher Tests
# =============================================================================


class TestConfigWatcher:
    """Tests for config file watching and reloading."""

    def test_watcher_initialization(self) -> None:
        watcher = ConfigWatcher(project_root="/test/project", poll_interval_ms=1000)

        assert watcher._project_root == "/test/project"
        assert watcher._poll_interval_ms == 1000
        assert watcher.running is False

    def test_watcher_start_stop(self, temp_config_file: Path) -> None:
        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[temp_config_file],
        ):
            watcher = ConfigWatcher(poll_interval_ms=20)
            watcher.start()
            assert watcher.running is True
            assert watcher.watched_paths == [temp_config_file]

            watcher.stop()
            assert watcher.running is False
            assert watcher.watched_paths == []

    def test_missing_config_files_not_watched(self, tmp_path: Path) -> None:
        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[tmp_path / "absent.yaml"],
        ):
            with ConfigWatcher(poll_interval_ms=20) as watcher:
                assert watcher.watched_paths == []

    def test_refresh_picks_up_config_created_later(self, tmp_path: Path) -> None:
        late_config = tmp_path / "late.yaml"

        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[late_config],
        ), patch("configmapwatch.config.watcher.reload_config") as mock_reload:
            with ConfigWatcher(project_root="/project", poll_interval_ms=60_000) as watcher:
                assert watcher.refresh() == []
                mock_reload.assert_not_called()

                late_config.write_text("watch:\n  root: /etc/app\n")

                assert watcher.refresh() == [late_config]
                assert watcher.watched_paths == [late_config]
                mock_reload.assert_called_once_with(project_root="/project")

                assert watcher.refresh() == []
                assert mock_reload.call_count == 1

    def test_watcher_calls_reload_on_change(
        self, temp_config_file: Path, write_atomic
    ) -> None:
        reloaded = threading.Event()

        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[temp_config_file],
        ), patch(
            "configmapwatch.config.watcher.reload_config",
            side_effect=lambda **_: reloaded.set(),
        ) as mock_reload:
            with ConfigWatcher(project_root="/project", poll_interval_ms=20) as watcher:
                # Wait for the baseline poll
                inner = watcher._watchers[0]
                for _ in range(200):
                    if inner.last_fingerprint is not None:
                        break
                    time.sleep(0.01)

                write_atomic(temp_config_file, "watch:\n  root: /etc/other\n")
                assert reloaded.wait(2.0)

            mock_reload.assert_called_with(project_root="/project")

    def test_watcher_handles_reload_errors(self, temp_config_file: Path) -> None:
        """A failing reload is logged, not raised into the poll thread."""
        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[temp_config_file],
        ), patch(
            "configmapwatch.config.watcher.reload_config",
            side_effect=Exception("Reload error"),
        ):
            watcher = ConfigWatcher(poll_interval_ms=20)
            watcher._on_change(temp_config_file)

    def test_watcher_idempotent_start(self, temp_config_file: Path) -> None:
        with patch(
            "configmapwatch.config.watcher.get_config_paths",
            return_value=[temp_config_file],
        ):
            watcher = ConfigWatcher(poll_interval_ms=60_000)
            watcher.start()
            first = list(watcher._watchers)
            watcher.start()
            try:
                assert watcher._watchers == first
            finally:
                watcher.stop()


# =============================================================================
# Logging Tests
# =============================================================================


class TestLogging:
    """Tests for logging configuration."""

    def test_setup_logging_creates_file_handler(self, fresh_logging, temp_log_file) -> None:
        handler = setup_logging(LoggingConfig(level="INFO", file=temp_log_file))

        assert isinstance(handler, logging.FileHandler)
        assert handler in fresh_logging.handlers
        assert Path(temp_log_file).exists()
        assert fresh_logging.level == logging.INFO

    def test_setup_logging_defaults_to_stderr(self, fresh_logging) -> None:
        handler = setup_logging()

        assert type(handler) is logging.StreamHandler
        assert fresh_logging.level == logging.INFO

    def test_unopenable_file_falls_back_to_stderr(self, fresh_logging, caplog) -> None:
        handler = setup_logging(LoggingConfig(level="DEBUG", file="/nonexistent/dir/log.txt"))

        assert type(handler) is logging.StreamHandler
        assert fresh_logging.level == logging.DEBUG
        assert "Cannot open log file /nonexistent/dir/log.txt" in caplog.text

    def test_setup_logging_env_file(
        self, fresh_logging, temp_log_file, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CMW_LOG", temp_log_file)
        setup_logging()
        assert Path(temp_log_file).exists()

    def test_config_file_wins_over_env(
        self, fresh_logging, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CMW_LOG", str(tmp_path / "env.log"))
        setup_logging(LoggingConfig(file=str(tmp_path / "config.log")))

        assert (tmp_path / "config.log").exists()
        assert not (tmp_path / "env.log").exists()

    def test_setup_again_replaces_handler(self, fresh_logging, tmp_path: Path) -> None:
        handlers_before = len(fresh_logging.handlers)
        first = setup_logging(LoggingConfig(level="INFO", file=str(tmp_path / "a.log")))
        second = setup_logging(LoggingConfig(level="ERROR", file=str(tmp_path / "b.log")))

        assert first not in fresh_logging.handlers
        assert second in fresh_logging.handlers
        assert len(fresh_logging.handlers) == handlers_before + 1
        assert fresh_logging.level == logging.ERROR

    @pytest.mark.parametrize(
        ("level_str", "expected"),
        [
            ("TRACE", TRACE),
            ("DEBUG", logging.DEBUG),
            ("verbose", VERBOSE),
            ("INFO", logging.INFO),
            ("WARN", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
            ("bogus", logging.INFO),
        ],
    )
    def test_level_mapping(self, level_str: str, expected: int) -> None:
        assert resolve_level(LoggingConfig(level=level_str)) == expected

    def test_verbose_overrides_level(self) -> None:
        assert resolve_level(LoggingConfig(level="ERROR", verbose=4)) == TRACE
        assert resolve_level(LoggingConfig(verbose=0)) == logging.ERROR
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE
        assert resolve_level(LoggingConfig(verbose=-1)) == logging.ERROR
        assert resolve_level(None) == logging.INFO

    def test_get_logger_child(self) -> None:
        assert get_logger("watching").name == "configmapwatch.watching"

    def test_get_logger_root(self) -> None:
        assert get_logger().name == "configmapwatch"

    def test_logging_format(self, fresh_logging, temp_log_file) -> None:
        setup_logging(LoggingConfig(level="INFO", file=temp_log_file))

        get_logger("watching").warning("Could not read %s", "appsettings.json")

        content = Path(temp_log_file).read_text()
        assert "WARNING configmapwatch.watching: Could not read appsettings.json" in content
