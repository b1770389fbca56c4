from __future__ import annotations

from pathlib import Path

from opsfinder.domain.models.spreadsheet import STATUS_ACTIVE, STATUS_DELETED, SpreadsheetFile
from opsfinder.infrastructure.db.sqlite import get_connection


class SpreadsheetFileRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def get_by_id(self, file_id: str) -> SpreadsheetFile | None:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM spreadsheet_files WHERE id = ?",
                (file_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def list_active(
        self,
        *,
        uploaded_by: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SpreadsheetFile]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM spreadsheet_files
                WHERE status = ?
                  AND (? IS NULL OR uploaded_by = ?)
                ORDER BY uploaded_at DESC, id ASC
                LIMIT ? OFFSET ?
                """,
                (STATUS_ACTIVE, uploaded_by, uploaded_by, limit, offset),
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def count_active(self, *, uploaded_by: str | None = None) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS n FROM spreadsheet_files
                WHERE status = ?
                  AND (? IS NULL OR uploaded_by = ?)
                """,
                (STATUS_ACTIVE, uploaded_by, uploaded_by),
            ).fetchone()
        return int(row["n"])

    def mark_deleted(self, file_id: str) -> bool:
        """Flip an ACTIVE file to DELETED. Returns False when nothing changed."""
        with get_connection(self.db_path) as conn:
            cursor = conn.execute(
                "UPDATE spreadsheet_files SET status = ? WHERE id = ? AND status = ?",
                (STATUS_DELETED, file_id, STATUS_ACTIVE),
            )
            conn.commit()
            return cursor.rowcount == 1

    def count_all(self) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM spreadsheet_files").fetchone()
        return int(row["n"])

    def total_active_storage_bytes(self) -> int:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT COALESCE(SUM(file_size), 0) AS n FROM spreadsheet_files WHERE status = ?",
                (STATUS_ACTIVE,),
            ).fetchone()
        return int(row["n"])

    def list_active_storage_paths(self) -> set[str]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT storage_path FROM spreadsheet_files WHERE status = ?",
                (STATUS_ACTIVE,),
            ).fetchall()
        return {str(row["storage_path"]) for row in rows}

    @staticmethod
    def _to_model(row) -> SpreadsheetFile:
        return SpreadsheetFile(
            id=row["id"],
            original_filename=row["original_filename"],
            stored_filename=row["stored_filename"],
            storage_path=row["storage_path"],
            file_size=int(row["file_size"]),
            uploaded_by=row["uploaded_by"],
            uploaded_at=row["uploaded_at"],
            sheet_count=int(row["sheet_count"] or 0),
            row_count=int(row["row_count"] or 0),
            cell_count=int(row["cell_count"] or 0),
            status=row["status"],
        )
