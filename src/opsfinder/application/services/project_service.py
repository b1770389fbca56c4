from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from opsfinder.core.config import AppPaths
from opsfinder.core.errors import ConfigurationError, ProjectNotInitializedError
from opsfinder.core.files import ensure_directory
from opsfinder.infrastructure.db.sqlite import initialize_schema


@dataclass(slots=True)
class InitResult:
    paths_created: list[Path]
    db_path: Path


class ProjectService:
    def __init__(self, paths: AppPaths) -> None:
        self.paths = paths

    def init_project(self) -> InitResult:
        paths_created: list[Path] = []

        for path in (self.paths.home_dir, self.paths.storage_dir):
            if path.exists() and not path.is_dir():
                raise ConfigurationError(f"Expected a directory but found a file: {path}")
            if not path.exists():
                paths_created.append(path)
            ensure_directory(path)

        initialize_schema(self.paths.db_path)

        return InitResult(paths_created=paths_created, db_path=self.paths.db_path)

    def is_initialized(self) -> bool:
        return self.paths.db_path.exists()

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise ProjectNotInitializedError(
                f"No index found at {self.paths.db_path}. Run 'opsfinder init' first."
            )
