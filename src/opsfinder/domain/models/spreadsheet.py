from __future__ import annotations

from dataclasses import dataclass, field

STATUS_ACTIVE = "ACTIVE"
STATUS_DELETED = "DELETED"


@dataclass(slots=True)
class SpreadsheetFile:
    id: str
    original_filename: str
    stored_filename: str
    storage_path: str
    file_size: int
    uploaded_by: str
    uploaded_at: str
    sheet_count: int
    row_count: int
    cell_count: int
    status: str = STATUS_ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


@dataclass(slots=True)
class Sheet:
    id: str
    file_id: str
    sheet_name: str
    sheet_index: int
    row_count: int
    column_count: int
    headers: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Cell:
    id: str
    sheet_id: str
    row_number: int
    column_index: int
    column_header: str
    cell_value: str

    @property
    def cell_value_lower(self) -> str:
        return self.cell_value.lower()


@dataclass(slots=True)
class SpreadsheetFileDetail:
    file: SpreadsheetFile
    sheets: list[Sheet]


@dataclass(slots=True)
class SpreadsheetStats:
    total_files: int
    active_files: int
    total_sheets: int
    total_cells: int
    total_storage_bytes: int
