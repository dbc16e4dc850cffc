"""Plain filesystem metadata passthroughs for a WatchRegistry root.

No caching and no change detection: every call goes straight to the
filesystem.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class FileInfo:
    """Snapshot of a path's metadata."""

    name: str
    physical_path: Path
    exists: bool
    is_directory: bool = False
    length: int = -1
    last_modified: float | None = None

    @classmethod
    def from_path(cls, path: Path) -> FileInfo:
        """Stat a path. Missing paths produce exists=False instead of raising.

        A path that runs through a regular file (``settings.json/child``)
        counts as missing.
        """
        try:
            stat = path.stat()
        except (FileNotFoundError, NotADirectoryError):
            return cls(name=path.name, physical_path=path, exists=False)

        is_directory = path.is_dir()
        return cls(
            name=path.name,
            physical_path=path,
            exists=True,
            is_directory=is_directory,
            length=-1 if is_directory else stat.st_size,
            last_modified=stat.st_mtime,
        )


@dataclass(frozen=True)
class DirectoryContents:
    """Listing of a directory; empty with exists=False if it is missing."""

    path: Path
    exists: bool
    entries: list[FileInfo] = field(default_factory=list)

    @classmethod
    def from_path(cls, path: Path) -> DirectoryContents:
        if not path.is_dir():
            return cls(path=path, exists=False)

        with os.scandir(path) as it:
            entries = [FileInfo.from_path(Path(entry.path)) for entry in it]
        entries.sort(key=lambda info: info.name)
        return cls(path=path, exists=True, entries=entries)

    def __iter__(self) -> Iterator[FileInfo]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
