from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class RowCell:
    column_header: str
    column_index: int
    cell_value: str
    is_matched_cell: bool


@dataclass(slots=True)
class SearchHit:
    cell_id: str
    file_id: str
    file_name: str
    sheet_id: str
    sheet_name: str
    column_header: str
    row_number: int
    column_index: int
    cell_value: str
    row_data: list[RowCell] = field(default_factory=list)


@dataclass(slots=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size
