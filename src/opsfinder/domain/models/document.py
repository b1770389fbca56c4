from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class ParsedRow:
    row_number: int
    values: list[str]

    @property
    def cell_count(self) -> int:
        return sum(1 for value in self.values if value.strip())


@dataclass(slots=True)
class ParsedSheet:
    sheet_name: str
    sheet_index: int
    headers: list[str] = field(default_factory=list)
    rows: list[ParsedRow] = field(default_factory=list)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def cell_count(self) -> int:
        return sum(row.cell_count for row in self.rows)


@dataclass(slots=True)
class ParsedWorkbook:
    """In-memory document tree of one upload, built before anything is persisted."""

    original_filename: str
    file_size: int
    sheets: list[ParsedSheet] = field(default_factory=list)

    @property
    def total_row_count(self) -> int:
        return sum(sheet.row_count for sheet in self.sheets)

    @property
    def total_cell_count(self) -> int:
        return sum(sheet.cell_count for sheet in self.sheets)
