from __future__ import annotations

import json
from pathlib import Path

from opsfinder.domain.models.spreadsheet import STATUS_ACTIVE, Sheet
from opsfinder.infrastructure.db.sqlite import get_connection


class SheetRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def list_for_file(self, file_id: str) -> list[Sheet]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM spreadsheet_sheets
                WHERE file_id = ?
                ORDER BY sheet_index ASC
                """,
                (file_id,),
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def count_active(self) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS n
                FROM spreadsheet_sheets s
                JOIN spreadsheet_files f ON f.id = s.file_id
                WHERE f.status = ?
                """,
                (STATUS_ACTIVE,),
            ).fetchone()
        return int(row["n"])

    @staticmethod
    def _to_model(row) -> Sheet:
        headers = json.loads(row["headers_json"] or "[]")
        return Sheet(
            id=row["id"],
            file_id=row["file_id"],
            sheet_name=row["sheet_name"],
            sheet_index=int(row["sheet_index"]),
            row_count=int(row["row_count"] or 0),
            column_count=int(row["column_count"] or 0),
            headers=[str(h) for h in headers],
        )
