from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from datetime import date
from pathlib import Path

from opsfinder.core.errors import NotFoundError, StorageFault
from opsfinder.core.files import ensure_directory, remove_empty_parents, write_bytes_atomic
from opsfinder.core.ids import new_blob_name
from opsfinder.core.time import year_month_parts

logger = logging.getLogger(__name__)


class BlobStore:
    """Original upload bytes on disk, laid out as ``<base>/<YYYY>/<MM>/<uuid>.xlsx``.

    The store never looks inside the bytes it keeps.
    """

    EXTENSION = ".xlsx"

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir.expanduser().resolve()

    def ensure_layout(self) -> None:
        ensure_directory(self.base_dir)

    def relpath_for(self, blob_name: str, today: date | None = None) -> Path:
        year, month = year_month_parts(today)
        return Path(year) / month / blob_name

    def store(self, content: bytes, original_filename: str) -> str:
        dst = self.base_dir / self.relpath_for(new_blob_name(self.EXTENSION))
        try:
            self.ensure_layout()
            write_bytes_atomic(dst, content)
        except OSError as exc:
            logger.error("Failed to store blob for %s: %s", original_filename, exc)
            raise StorageFault(f"Failed to store file: {exc}") from exc
        logger.info("Stored blob %s -> %s", original_filename, dst)
        return str(dst)

    def delete(self, path: str | None) -> None:
        if not path:
            logger.warning("Attempted to delete blob with empty path")
            return
        target = Path(path).resolve()
        try:
            if not target.is_file():
                logger.warning("Blob not found for deletion: %s", path)
                return
            target.unlink()
        except OSError as exc:
            logger.error("Failed to delete blob %s: %s", path, exc)
            return
        logger.info("Deleted blob %s", path)
        self._cleanup_empty_directories(target.parent)

    def exists(self, path: str | None) -> bool:
        if not path:
            return False
        target = Path(path)
        return target.is_file() and os.access(target, os.R_OK)

    def size(self, path: str) -> int:
        try:
            return Path(path).stat().st_size
        except OSError as exc:
            raise NotFoundError(f"Blob not found: {path}") from exc

    def retrieve(self, path: str | None) -> Path:
        if not path:
            raise NotFoundError("Blob path is empty")
        if not self.exists(path):
            raise NotFoundError(f"Blob not found: {path}")
        return Path(path)

    def iter_blobs(self) -> Iterator[Path]:
        if not self.base_dir.is_dir():
            return
        for candidate in sorted(self.base_dir.glob(f"*/*/*{self.EXTENSION}")):
            if candidate.is_file():
                yield candidate

    def _cleanup_empty_directories(self, directory: Path) -> None:
        try:
            for removed in remove_empty_parents(directory, self.base_dir):
                logger.debug("Removed empty blob directory %s", removed)
        except OSError as exc:
            logger.warning("Failed to clean up blob directory %s: %s", directory, exc)
