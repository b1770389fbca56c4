from __future__ import annotations

import logging

from opsfinder.application.services.cell_normalizer import normalize_cell
from opsfinder.core.errors import ValidationError
from opsfinder.domain.models.document import ParsedRow, ParsedSheet, ParsedWorkbook
from opsfinder.infrastructure.parsers.xlsx_reader import XlsxFormatError, XlsxWorkbook

logger = logging.getLogger(__name__)

MAX_SHEETS_PER_FILE = 50
MAX_CELLS_PER_FILE = 100_000


def default_header(column_index: int) -> str:
    return f"Column_{column_index + 1}"


class SpreadsheetParser:
    """Turns xlsx bytes into a fully normalized in-memory document tree.

    Nothing is written anywhere; limits are checked only after the whole workbook is read,
    so a rejected upload never leaves partial state behind.
    """

    def __init__(
        self,
        *,
        max_sheets: int = MAX_SHEETS_PER_FILE,
        max_cells: int = MAX_CELLS_PER_FILE,
    ) -> None:
        self.max_sheets = max_sheets
        self.max_cells = max_cells

    def parse(self, content: bytes, original_filename: str, file_size: int) -> ParsedWorkbook:
        logger.info("Parsing Excel file %s (%d bytes)", original_filename, file_size)
        try:
            with XlsxWorkbook.open(content) as workbook:
                sheets = [
                    self._parse_sheet(workbook, sheet_index, sheet_name, sheet_path)
                    for sheet_index, (sheet_name, sheet_path) in enumerate(workbook.sheets)
                ]
        except XlsxFormatError as exc:
            logger.warning("Failed to parse Excel file %s: %s", original_filename, exc)
            raise ValidationError(f"Failed to parse Excel file: {exc}") from exc

        document = ParsedWorkbook(
            original_filename=original_filename,
            file_size=file_size,
            sheets=sheets,
        )
        self._check_limits(document)
        logger.info(
            "Parsed %s: %d sheets, %d rows, %d cells",
            original_filename,
            len(document.sheets),
            document.total_row_count,
            document.total_cell_count,
        )
        return document

    def _parse_sheet(
        self,
        workbook: XlsxWorkbook,
        sheet_index: int,
        sheet_name: str,
        sheet_path: str,
    ) -> ParsedSheet:
        sheet = ParsedSheet(sheet_name=sheet_name, sheet_index=sheet_index)
        epoch_1904 = workbook.epoch_1904
        for row_index, cells in workbook.iter_rows(sheet_path):
            if row_index == 0:
                sheet.headers = self._headers(cells, epoch_1904, sheet_name)
                continue
            width = max(max(cells, default=-1) + 1, len(sheet.headers))
            values = [
                normalize_cell(
                    cells.get(col),
                    epoch_1904=epoch_1904,
                    ref=f"{sheet_name}!R{row_index + 1}C{col + 1}",
                )
                for col in range(width)
            ]
            if any(value for value in values):
                sheet.rows.append(ParsedRow(row_number=row_index, values=values))
        logger.debug(
            "Sheet %r: %d columns, %d data rows",
            sheet_name,
            sheet.column_count,
            sheet.row_count,
        )
        return sheet

    @staticmethod
    def _headers(cells: dict, epoch_1904: bool, sheet_name: str) -> list[str]:
        width = max(cells, default=-1) + 1
        headers: list[str] = []
        for col in range(width):
            value = normalize_cell(
                cells.get(col), epoch_1904=epoch_1904, ref=f"{sheet_name}!R1C{col + 1}"
            )
            headers.append(value or default_header(col))
        return headers

    def _check_limits(self, document: ParsedWorkbook) -> None:
        sheet_count = len(document.sheets)
        if sheet_count > self.max_sheets:
            raise ValidationError(
                f"Excel file has too many sheets: {sheet_count} (maximum {self.max_sheets})"
            )
        cell_count = document.total_cell_count
        if cell_count > self.max_cells:
            raise ValidationError(
                f"Excel file has too many cells: {cell_count} (maximum {self.max_cells})"
            )
