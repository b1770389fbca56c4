from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from opsfinder.domain.models.spreadsheet import Cell, Sheet, SpreadsheetFile
from opsfinder.infrastructure.db.sqlite import get_connection

logger = logging.getLogger(__name__)


class SpreadsheetIndexRepo:
    """Writes one file, its sheets and its cells as a single transaction."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    def write_file(
        self,
        spreadsheet_file: SpreadsheetFile,
        sheets: list[Sheet],
        cell_batches: Iterable[list[Cell]],
    ) -> int:
        """Persist everything or nothing. Returns the number of cells written."""
        conn = get_connection(self.db_path)
        cells_written = 0
        try:
            conn.execute("BEGIN")
            self._insert_file(conn, spreadsheet_file)
            self._insert_sheets(conn, sheets)
            for batch_no, batch in enumerate(cell_batches, start=1):
                if not batch:
                    continue
                self._insert_cells(conn, batch)
                cells_written += len(batch)
                logger.debug(
                    "Flushed cell batch %d (%d cells) for file %s",
                    batch_no,
                    len(batch),
                    spreadsheet_file.id,
                )
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()
        return cells_written

    @staticmethod
    def _insert_file(conn, f: SpreadsheetFile) -> None:
        conn.execute(
            """
            INSERT INTO spreadsheet_files (
                id,
                original_filename,
                stored_filename,
                storage_path,
                file_size,
                uploaded_by,
                uploaded_at,
                sheet_count,
                row_count,
                cell_count,
                status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                f.id,
                f.original_filename,
                f.stored_filename,
                f.storage_path,
                f.file_size,
                f.uploaded_by,
                f.uploaded_at,
                f.sheet_count,
                f.row_count,
                f.cell_count,
                f.status,
            ),
        )

    @staticmethod
    def _insert_sheets(conn, sheets: list[Sheet]) -> None:
        if not sheets:
            return
        conn.executemany(
            """
            INSERT INTO spreadsheet_sheets (
                id,
                file_id,
                sheet_name,
                sheet_index,
                row_count,
                column_count,
                headers_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    sheet.id,
                    sheet.file_id,
                    sheet.sheet_name,
                    sheet.sheet_index,
                    sheet.row_count,
                    sheet.column_count,
                    json.dumps(sheet.headers, ensure_ascii=False),
                )
                for sheet in sheets
            ],
        )

    @staticmethod
    def _insert_cells(conn, cells: list[Cell]) -> None:
        conn.executemany(
            """
            INSERT INTO spreadsheet_cells (
                id,
                sheet_id,
                row_number,
                column_index,
                column_header,
                cell_value,
                cell_value_lower
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    cell.id,
                    cell.sheet_id,
                    cell.row_number,
                    cell.column_index,
                    cell.column_header,
                    cell.cell_value,
                    cell.cell_value_lower,
                )
                for cell in cells
            ],
        )
