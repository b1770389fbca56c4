from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console

from opsfinder.application.services.project_service import ProjectService
from opsfinder.application.services.spreadsheet_service import (
    SpreadsheetService,
    build_spreadsheet_service,
)
from opsfinder.core.config import AppPaths, AppSettings


@dataclass(slots=True)
class CLIContext:
    paths: AppPaths
    console: Console
    settings: AppSettings = field(default_factory=AppSettings)

    def spreadsheet_service(self) -> SpreadsheetService:
        ProjectService(self.paths).require_initialized()
        return build_spreadsheet_service(self.paths, self.settings)
