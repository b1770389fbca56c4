from __future__ import annotations

import os
from pathlib import Path


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_bytes_atomic(dst: Path, content: bytes) -> None:
    ensure_directory(dst.parent)
    temp_path = dst.parent / f".{dst.name}.tmp"
    try:
        temp_path.write_bytes(content)
        os.replace(temp_path, dst)
    finally:
        temp_path.unlink(missing_ok=True)


def remove_empty_parents(directory: Path, stop_at: Path) -> list[Path]:
    """Remove ``directory`` and its ancestors while empty, never touching ``stop_at``.

    Returns the directories actually removed. Raises ``OSError`` from the filesystem.
    """
    removed: list[Path] = []
    current = directory
    while current != stop_at and stop_at in current.parents:
        if not current.is_dir() or any(current.iterdir()):
            break
        current.rmdir()
        removed.append(current)
        current = current.parent
    return removed
