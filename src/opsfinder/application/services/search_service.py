from __future__ import annotations

import logging
from typing import Any

from opsfinder.core.errors import ValidationError
from opsfinder.domain.models.search import Page, RowCell, SearchHit
from opsfinder.infrastructure.db.repos.cell_repo import KEYWORD_SLOTS, CellRepo

logger = logging.getLogger(__name__)

MAX_KEYWORDS = KEYWORD_SLOTS
MAX_KEYWORD_LENGTH = 200
MAX_PAGE_SIZE = 100


def parse_keywords(raw: str | list[str] | None) -> list[str]:
    """Split the comma form into trimmed, non-empty keywords and enforce the limits."""
    if raw is None:
        raise ValidationError("At least one keyword is required")
    # The list form is held to the same budget as its comma-joined equivalent.
    joined = raw if isinstance(raw, str) else ",".join(str(item) for item in raw if item is not None)
    if len(joined) > MAX_KEYWORD_LENGTH:
        raise ValidationError(f"Keywords must be at most {MAX_KEYWORD_LENGTH} characters")
    candidates = raw.split(",") if isinstance(raw, str) else list(raw)
    keywords = [str(item).strip() for item in candidates if item is not None and str(item).strip()]
    if not keywords:
        raise ValidationError("At least one keyword is required")
    if len(keywords) > MAX_KEYWORDS:
        raise ValidationError(f"At most {MAX_KEYWORDS} keywords are allowed, got {len(keywords)}")
    return keywords


class SearchService:
    def __init__(self, cell_repo: CellRepo) -> None:
        self.cell_repo = cell_repo

    def search(
        self,
        keywords: str | list[str] | None,
        *,
        file_id: str | None = None,
        sheet_name: str | None = None,
        page: int = 0,
        page_size: int = 20,
    ) -> Page[SearchHit]:
        if page < 0:
            raise ValidationError("page must be >= 0")
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        lowered = [keyword.lower() for keyword in parse_keywords(keywords)]
        file_id = file_id or None
        sheet_name = sheet_name or None

        total = self.cell_repo.count_search(lowered, file_id=file_id, sheet_name=sheet_name)
        rows = self.cell_repo.search(
            lowered,
            file_id=file_id,
            sheet_name=sheet_name,
            limit=page_size,
            offset=page * page_size,
        )
        hits = [self._to_hit(row) for row in rows]
        logger.info("Search %s matched %d cells (page %d)", lowered, total, page)
        return Page(items=hits, total=total, page=page, page_size=page_size)

    def _to_hit(self, row: dict[str, Any]) -> SearchHit:
        row_cells = self.cell_repo.list_row(row["sheet_id"], int(row["row_number"]))
        return SearchHit(
            cell_id=row["id"],
            file_id=row["file_id"],
            file_name=row["file_name"],
            sheet_id=row["sheet_id"],
            sheet_name=row["sheet_name"],
            column_header=row["column_header"],
            row_number=int(row["row_number"]),
            column_index=int(row["column_index"]),
            cell_value=row["cell_value"],
            row_data=[
                RowCell(
                    column_header=cell.column_header,
                    column_index=cell.column_index,
                    cell_value=cell.cell_value,
                    is_matched_cell=cell.id == row["id"],
                )
                for cell in row_cells
            ],
        )
