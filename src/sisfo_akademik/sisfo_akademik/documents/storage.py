from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Optional

from ..core.constants import UPLOAD_URL_PREFIX
from ..core.exceptions import StorageError

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """Stores uploads as flat files under one directory served at ``/uploads/``."""

    def __init__(self, upload_dir: str | Path):
        self._root = Path(upload_dir)

    @property
    def root(self) -> Path:
        return self._root

    def save(self, filename: str, stream: BinaryIO) -> str:
        """Copy ``stream`` to ``<root>/<filename>`` and return its public URL."""

        target = self._root / filename
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as out:
                shutil.copyfileobj(stream, out)
        except OSError as e:
            target.unlink(missing_ok=True)
            raise StorageError("Failed to store file", detail=str(e)) from e
        return UPLOAD_URL_PREFIX + filename

    def remove(self, file_url: str) -> bool:
        """Best-effort unlink; returns whether a file was removed."""

        filename = self.filename_from_url(file_url)
        if not filename:
            return False
        try:
            (self._root / filename).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("could not remove stored file %s: %s", filename, e)
            return False
        return True

    @staticmethod
    def filename_from_url(file_url: str) -> Optional[str]:
        if not file_url.startswith(UPLOAD_URL_PREFIX):
            return None
        name = file_url[len(UPLOAD_URL_PREFIX):]
        # Never follow a path outside the upload directory.
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return None
        return name
