from __future__ import annotations

from pathlib import Path
from typing import Any

from opsfinder.domain.models.spreadsheet import STATUS_ACTIVE, Cell
from opsfinder.infrastructure.db.sqlite import get_connection

KEYWORD_SLOTS = 5

# Each slot is a wildcard when bound to NULL; instr() keeps % and _ literal.
_KEYWORD_CLAUSE = "AND (? IS NULL OR instr(c.cell_value_lower, ?) > 0)"

_SEARCH_FROM = (
    """
    FROM spreadsheet_cells c
    JOIN spreadsheet_sheets s ON s.id = c.sheet_id
    JOIN spreadsheet_files f ON f.id = s.file_id
    WHERE f.status = ?
      AND (? IS NULL OR f.id = ?)
      AND (? IS NULL OR py_lower(s.sheet_name) = ?)
    """
    + "\n".join(f"      {_KEYWORD_CLAUSE}" for _ in range(KEYWORD_SLOTS))
)


class CellRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def search(
        self,
        keywords: list[str],
        *,
        file_id: str | None = None,
        sheet_name: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return matching cells joined with their sheet and file names.

        ``keywords`` must already be lower-cased; at most ``KEYWORD_SLOTS`` are used.
        """
        params = self._search_params(keywords, file_id=file_id, sheet_name=sheet_name)
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                f"""
                SELECT c.*, s.sheet_name AS sheet_name, s.file_id AS file_id,
                       f.original_filename AS file_name
                {_SEARCH_FROM}
                ORDER BY f.uploaded_at ASC, f.id ASC, s.sheet_index ASC,
                         c.row_number ASC, c.column_index ASC
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            ).fetchall()
        return [dict(row) for row in rows]

    def count_search(
        self,
        keywords: list[str],
        *,
        file_id: str | None = None,
        sheet_name: str | None = None,
    ) -> int:
        params = self._search_params(keywords, file_id=file_id, sheet_name=sheet_name)
        with get_connection(self.db_path) as conn:
            row = conn.execute(f"SELECT COUNT(*) AS n {_SEARCH_FROM}", params).fetchone()
        return int(row["n"])

    def list_row(self, sheet_id: str, row_number: int) -> list[Cell]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM spreadsheet_cells
                WHERE sheet_id = ? AND row_number = ?
                ORDER BY column_index ASC
                """,
                (sheet_id, row_number),
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def count_active(self) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS n
                FROM spreadsheet_cells c
                JOIN spreadsheet_sheets s ON s.id = c.sheet_id
                JOIN spreadsheet_files f ON f.id = s.file_id
                WHERE f.status = ?
                """,
                (STATUS_ACTIVE,),
            ).fetchone()
        return int(row["n"])

    @staticmethod
    def _search_params(
        keywords: list[str],
        *,
        file_id: str | None,
        sheet_name: str | None,
    ) -> tuple[Any, ...]:
        if len(keywords) > KEYWORD_SLOTS:
            raise ValueError(f"At most {KEYWORD_SLOTS} keywords are supported, got {len(keywords)}")
        sheet_key = sheet_name.lower() if sheet_name is not None else None
        params: list[Any] = [STATUS_ACTIVE, file_id, file_id, sheet_key, sheet_key]
        slots: list[str | None] = list(keywords) + [None] * (KEYWORD_SLOTS - len(keywords))
        for keyword in slots:
            params.extend((keyword, keyword))
        return tuple(params)

    @staticmethod
    def _to_model(row) -> Cell:
        return Cell(
            id=row["id"],
            sheet_id=row["sheet_id"],
            row_number=int(row["row_number"]),
            column_index=int(row["column_index"]),
            column_header=row["column_header"],
            cell_value=row["cell_value"],
        )
