from __future__ import annotations

import io
import zipfile
from datetime import date

import pytest

from opsfinder.domain.models.raw_cell import (
    BooleanCell,
    ErrorCell,
    FormulaCell,
    NumberCell,
    TextCell,
    UnknownCell,
)
from opsfinder.infrastructure.parsers.xlsx_reader import (
    XlsxFormatError,
    XlsxWorkbook,
    column_index_from_ref,
    is_date_format_code,
)
from xlsx_builder import STYLE_CUSTOM_DATE, STYLE_PERCENT, Raw, build_xlsx


def _rows(content: bytes, sheet_no: int = 0) -> dict[int, dict]:
    with XlsxWorkbook.open(content) as workbook:
        _name, part = workbook.sheets[sheet_no]
        return dict(workbook.iter_rows(part))


def test_date_format_code_detection() -> None:
    assert is_date_format_code("yyyy-mm-dd")
    assert is_date_format_code("dd/mm/yyyy;@")
    assert is_date_format_code("mmm-yy")
    assert is_date_format_code("[h]:mm:ss")
    assert is_date_format_code("[$-409]d-mmm-yyyy")
    assert not is_date_format_code("General")
    assert not is_date_format_code("0.00%")
    assert not is_date_format_code("#,##0.00")
    assert not is_date_format_code('"days" 0')
    assert not is_date_format_code("[Red]0.00")
    assert not is_date_format_code("")


def test_column_index_from_ref() -> None:
    assert column_index_from_ref("A1") == 0
    assert column_index_from_ref("Z9") == 25
    assert column_index_from_ref("AA10") == 26
    assert column_index_from_ref(None) == -1
    assert column_index_from_ref("12") == -1


def test_workbook_lists_sheets_in_order() -> None:
    content = build_xlsx([("Inventory", [["a"]]), ("Contacts", [["b"]]), ("Empty", [])])
    with XlsxWorkbook.open(content) as workbook:
        assert [name for name, _part in workbook.sheets] == ["Inventory", "Contacts", "Empty"]
        assert workbook.epoch_1904 is False


def test_reads_typed_cells() -> None:
    content = build_xlsx(
        [
            (
                "Sheet1",
                [
                    ["Name", "Count", "Active", "Seen"],
                    ["router", 4, True, date(2024, 1, 15)],
                    [
                        Raw("<v>#N/A</v>", t="e"),
                        Raw("<v>0.25</v>", s=STYLE_PERCENT),
                        Raw("<v>45306</v>", s=STYLE_CUSTOM_DATE),
                        Raw("<v>99</v>", t="s"),
                    ],
                ],
            )
        ],
        shared_strings=True,
    )

    rows = _rows(content)

    assert rows[0][0] == TextCell("Name")
    assert rows[1][0] == TextCell("router")
    assert rows[1][1] == NumberCell(4.0)
    assert rows[1][2] == BooleanCell(True)
    assert rows[1][3] == NumberCell(45306.0, date_formatted=True)
    assert rows[2][0] == ErrorCell("#N/A")
    assert rows[2][1] == NumberCell(0.25, date_formatted=False)
    assert rows[2][2] == NumberCell(45306.0, date_formatted=True)
    assert isinstance(rows[2][3], UnknownCell)


def test_reads_formula_cached_values() -> None:
    content = build_xlsx(
        [
            (
                "Calc",
                [
                    ["Total", "Label", "Broken", "Pending"],
                    [
                        Raw("<f>SUM(B2:B3)</f><v>30</v>"),
                        Raw("<f>A2&amp;B2</f><v>rack 4</v>", t="str"),
                        Raw("<f>1/0</f><v>#DIV/0!</v>", t="e"),
                        Raw("<f>NOW()</f>"),
                    ],
                ],
            )
        ]
    )

    row = _rows(content)[1]

    assert row[0] == FormulaCell("SUM(B2:B3)", NumberCell(30.0))
    assert row[1] == FormulaCell("A2&B2", TextCell("rack 4"))
    assert row[2] == FormulaCell("1/0", ErrorCell("#DIV/0!"))
    assert row[3] == FormulaCell("NOW()", None)


def test_sparse_rows_keep_their_positions() -> None:
    content = build_xlsx([("Sheet1", [["h1", None, "h3"], None, None, [None, "x"]])])

    rows = _rows(content)

    assert sorted(rows) == [0, 3]
    assert sorted(rows[0]) == [0, 2]
    assert rows[3] == {1: TextCell("x")}


def test_rich_text_runs_are_joined() -> None:
    content = build_xlsx(
        [("Sheet1", [[Raw("<is><r><t>core </t></r><r><t>switch</t></r></is>", t="inlineStr")]])]
    )

    assert _rows(content)[0][0] == TextCell("core switch")


def test_reads_date1904_flag() -> None:
    content = build_xlsx([("Sheet1", [["When"], [date(2024, 1, 15)]])], date1904=True)

    with XlsxWorkbook.open(content) as workbook:
        assert workbook.epoch_1904 is True
        rows = dict(workbook.iter_rows(workbook.sheets[0][1]))
    assert rows[1][0] == NumberCell(43844.0, date_formatted=True)


def test_rejects_non_zip_bytes() -> None:
    with pytest.raises(XlsxFormatError):
        XlsxWorkbook.open(b"this is not a spreadsheet")


def test_rejects_zip_without_workbook() -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/document.xml", "<document/>")

    with pytest.raises(XlsxFormatError):
        XlsxWorkbook.open(buffer.getvalue())
