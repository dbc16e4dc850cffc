"""Configuration management for configmapwatch.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/configmapwatch/ or %PROGRAMDATA%)
- User-level config (~/.config/configmapwatch/, ~/.cmw/ or %APPDATA%)
- Project-level config ($project_root/.cmw/)
- Environment variable overrides (highest priority)

Example usage:
    from configmapwatch.config import open_registry

    with open_registry(project_root="/path/to/project") as registry:
        watcher = registry.watch("appsettings.json")
"""

from configmapwatch.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    open_registry,
    reload_config,
    reset_config,
)
from configmapwatch.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from configmapwatch.config.schema import Config, LoggingConfig, WatchConfig
from configmapwatch.config.watcher import ConfigWatcher

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    "open_registry",
    # Schema types
    "WatchConfig",
    "LoggingConfig",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
    # Watcher
    "ConfigWatcher",
]
