"""Configuration schema dataclasses for configmapwatch.

All fields are optional to support partial configs that merge together.

Example config.yaml:
    watch:
      root: /etc/app/config
      poll_interval_ms: 5000
      files:
        - appsettings.json
    logging:
      level: DEBUG
      file: ~/configmapwatch.log
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from configmapwatch.watching.watcher import DEFAULT_POLL_INTERVAL_MS


@dataclass
class WatchConfig:
    """Watch registry configuration."""

    root: str | None = None  # Directory holding the mounted files
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    files: list[str] = field(default_factory=list)  # Paths relative to root


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    file: str | None = None  # Log file path
    verbose: int | None = None  # 0..4, overrides level


@dataclass
class Config:
    """Root configuration object."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys
