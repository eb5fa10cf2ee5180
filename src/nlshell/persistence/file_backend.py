"""File-based statistics backend with owner-only permissions."""

from __future__ import annotations

import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)

FILE_MODE = 0o600
DIR_MODE = 0o700


class FileStatsBackend:
    """Writes the statistics document as a JSON file.

    The parent directory is created with mode ``0o700`` and the file with
    mode ``0o600``; an existing file is re-chmodded on every save.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def save(self, data: str) -> None:
        self._path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(data)
        os.chmod(self._path, FILE_MODE)
        log.debug("Saved cache statistics to %s", self._path)

    def load(self) -> str:
        if not self._path.is_file():
            raise KeyError(f"Not found: {self._path}")
        return self._path.read_text(encoding="utf-8")

    def exists(self) -> bool:
        return self._path.is_file()
