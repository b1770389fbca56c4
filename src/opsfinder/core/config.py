from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOME_DIRNAME = ".opsfinder"
DEFAULT_STORAGE_DIRNAME = "excel-files"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    home_dir: Path
    db_path: Path
    storage_dir: Path


@dataclass(frozen=True)
class AppSettings:
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    home_raw = os.getenv("OPSFINDER_HOME")
    if home_raw:
        home_dir = Path(home_raw).expanduser().resolve()
    else:
        home_dir = root / DEFAULT_HOME_DIRNAME

    storage_raw = os.getenv("OPSFINDER_STORAGE_DIR")
    if storage_raw:
        storage_dir = Path(storage_raw).expanduser().resolve()
    else:
        storage_dir = home_dir / DEFAULT_STORAGE_DIRNAME

    return AppPaths(
        project_root=root,
        home_dir=home_dir,
        db_path=home_dir / "opsfinder.db",
        storage_dir=storage_dir,
    )


def load_settings() -> AppSettings:
    raw = os.getenv("OPSFINDER_MAX_UPLOAD_BYTES")
    if raw is None:
        return AppSettings()
    try:
        value = int(raw)
    except ValueError:
        return AppSettings()
    return AppSettings(max_upload_bytes=value if value > 0 else DEFAULT_MAX_UPLOAD_BYTES)
