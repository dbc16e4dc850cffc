"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Layering system, user, project and environment settings
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from configmapwatch.config.paths import get_config_paths
from configmapwatch.config.schema import Config, LoggingConfig, WatchConfig
from configmapwatch.logging import setup_logging
from configmapwatch.watching.registry import WatchRegistry
from configmapwatch.watching.watcher import DEFAULT_POLL_INTERVAL_MS

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("configmapwatch.config")

# Global cached config
_cached_config: Config | None = None

# Callbacks to notify on config reload
_reload_callbacks: list[Callable[[Config], None]] = []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Recognised variables:
        CMW_ROOT: watch.root
        CMW_POLL_INTERVAL_MS: watch.poll_interval_ms
        CMW_LOG: logging.file

    Returns:
        Config dict with values from environment.
    """
    overrides: dict[str, Any] = {}

    root = os.environ.get("CMW_ROOT")
    if root:
        overrides.setdefault("watch", {})["root"] = root

    interval = os.environ.get("CMW_POLL_INTERVAL_MS")
    if interval:
        try:
            overrides.setdefault("watch", {})["poll_interval_ms"] = int(interval)
        except ValueError:
            _log.warning("Ignoring non-integer CMW_POLL_INTERVAL_MS=%r", interval)

    log_path = os.environ.get("CMW_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    return overrides


def merge_layers(*layers: dict[str, Any]) -> dict[str, Any]:
    """Fold config layers into one dict, later layers winning.

    Mappings merge key by key. A None in a later layer leaves the earlier
    value alone, so a partial file can't blank out a setting. Anything else,
    lists included, replaces what was there. Inputs are never modified.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            _overlay(merged, layer)
    return merged


def _overlay(target: dict[str, Any], layer: dict[str, Any]) -> dict[str, Any]:
    for key, value in layer.items():
        if value is None:
            continue
        if isinstance(value, dict):
            current = target.get(key)
            target[key] = _overlay(dict(current) if isinstance(current, dict) else {}, value)
        else:
            target[key] = value
    return target


def _positive_int(value: Any, default: int) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    return result if result > 0 else default


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed Config object.
    """
    watch_data = data.get("watch") or {}
    files = watch_data.get("files", [])
    root = watch_data.get("root")
    watch = WatchConfig(
        root=str(root) if root else None,
        poll_interval_ms=_positive_int(
            watch_data.get("poll_interval_ms"), DEFAULT_POLL_INTERVAL_MS
        ),
        files=[f for f in files if isinstance(f, str)] if isinstance(files, list) else [],
    )

    log_data = data.get("logging") or {}
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        file=log_data.get("file"),
        verbose=verbose if isinstance(verbose, int) else None,
    )

    known_keys = {"watch", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(watch=watch, logging=logging_config, extra=extra)


def load_config(project_root: str | Path | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($project_root/.cmw/config.yaml)
    3. User config (~/.config/configmapwatch/ or %APPDATA%)
    4. System config (/etc/configmapwatch/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_layers(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def open_registry(project_root: str | Path | None = None) -> WatchRegistry:
    """Load config, apply its logging settings and build the WatchRegistry.

    This is the one-call startup path: logging is set up from
    ``config.logging`` and every file in ``watch.files`` is already being
    watched when the registry comes back.

    Args:
        project_root: Optional project directory for project-level config.

    Returns:
        A registry the caller owns and must close().

    Raises:
        ValueError: If no watch root is configured (``watch.root`` / CMW_ROOT).
    """
    config = load_config(project_root)
    setup_logging(config.logging)
    return WatchRegistry.from_config(config.watch)


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None


def reload_config(project_root: str | Path | None = None) -> Config:
    """Reload config from files and notify callbacks.

    Args:
        project_root: Optional project directory.

    Returns:
        The newly loaded Config.
    """
    config = load_config(project_root=project_root, reload=True)

    for callback in list(_reload_callbacks):
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a callback to be called when config is reloaded.

    Args:
        callback: Function to call with the new Config.

    Returns:
        A function to unregister the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
