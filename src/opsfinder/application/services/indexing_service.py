from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from pathlib import Path

from opsfinder.application.services.spreadsheet_parser import default_header
from opsfinder.core.errors import IndexFault
from opsfinder.core.ids import new_uuid
from opsfinder.core.time import now_utc_iso
from opsfinder.domain.models.document import ParsedSheet, ParsedWorkbook
from opsfinder.domain.models.spreadsheet import STATUS_ACTIVE, Cell, Sheet, SpreadsheetFile
from opsfinder.infrastructure.db.repos.index_repo import SpreadsheetIndexRepo

logger = logging.getLogger(__name__)

BATCH_SIZE = 500


class IndexingService:
    def __init__(self, index_repo: SpreadsheetIndexRepo, *, batch_size: int = BATCH_SIZE) -> None:
        self.index_repo = index_repo
        self.batch_size = batch_size

    def index(self, document: ParsedWorkbook, blob_path: str, uploaded_by: str) -> SpreadsheetFile:
        """Write the file record, its sheets and every non-empty cell in one transaction.

        Any failure leaves the index untouched and surfaces as ``IndexFault``.
        """
        started = time.perf_counter()
        spreadsheet_file = SpreadsheetFile(
            id=new_uuid(),
            original_filename=document.original_filename,
            stored_filename=Path(blob_path).name,
            storage_path=blob_path,
            file_size=document.file_size,
            uploaded_by=uploaded_by,
            uploaded_at=now_utc_iso(),
            sheet_count=len(document.sheets),
            row_count=document.total_row_count,
            cell_count=document.total_cell_count,
            status=STATUS_ACTIVE,
        )
        sheet_pairs = [
            (self._build_sheet(spreadsheet_file.id, parsed), parsed) for parsed in document.sheets
        ]

        try:
            cells_written = self.index_repo.write_file(
                spreadsheet_file,
                [sheet for sheet, _parsed in sheet_pairs],
                self._cell_batches(sheet_pairs),
            )
        except Exception as exc:
            logger.error("Failed to index %s: %s", document.original_filename, exc)
            raise IndexFault(f"Failed to index Excel file: {exc}") from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Indexed %s as %s: %d sheets, %d rows, %d cells in %.0f ms",
            document.original_filename,
            spreadsheet_file.id,
            spreadsheet_file.sheet_count,
            spreadsheet_file.row_count,
            cells_written,
            elapsed_ms,
        )
        return spreadsheet_file

    @staticmethod
    def _build_sheet(file_id: str, parsed: ParsedSheet) -> Sheet:
        return Sheet(
            id=new_uuid(),
            file_id=file_id,
            sheet_name=parsed.sheet_name,
            sheet_index=parsed.sheet_index,
            row_count=parsed.row_count,
            column_count=parsed.column_count,
            headers=list(parsed.headers),
        )

    def _cell_batches(self, sheet_pairs: list[tuple[Sheet, ParsedSheet]]) -> Iterator[list[Cell]]:
        buffer: list[Cell] = []
        for sheet, parsed in sheet_pairs:
            for row in parsed.rows:
                for column_index, value in enumerate(row.values):
                    if not value.strip():
                        continue
                    header = (
                        parsed.headers[column_index]
                        if column_index < len(parsed.headers)
                        else default_header(column_index)
                    )
                    buffer.append(
                        Cell(
                            id=new_uuid(),
                            sheet_id=sheet.id,
                            row_number=row.row_number,
                            column_index=column_index,
                            column_header=header,
                            cell_value=value,
                        )
                    )
                    if len(buffer) >= self.batch_size:
                        yield buffer
                        buffer = []
        if buffer:
            yield buffer
