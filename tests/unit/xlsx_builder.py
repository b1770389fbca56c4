from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from xml.sax.saxutils import escape

MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"

# cellXfs indexes written by build_xlsx.
STYLE_DATE = 1
STYLE_DATETIME = 2
STYLE_CUSTOM_DATE = 3
STYLE_PERCENT = 4


@dataclass(frozen=True)
class Raw:
    """Literal cell body, e.g. ``Raw("<f>1/0</f><v>#DIV/0!</v>", t="e")``."""

    body: str
    t: str | None = None
    s: int | None = None


def column_letter(index: int) -> str:
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def excel_serial(value: date | datetime, *, date1904: bool = False) -> float:
    moment = value if isinstance(value, datetime) else datetime(value.year, value.month, value.day)
    epoch = datetime(1904, 1, 1) if date1904 else datetime(1899, 12, 30)
    delta = moment - epoch
    return delta.days + delta.seconds / 86400.0


def _cell_xml(ref: str, value: Any, shared: list[str] | None, date1904: bool) -> str:
    if isinstance(value, Raw):
        attrs = f' r="{ref}"'
        if value.t:
            attrs += f' t="{value.t}"'
        if value.s is not None:
            attrs += f' s="{value.s}"'
        return f"<c{attrs}>{value.body}</c>"
    if isinstance(value, bool):
        return f'<c r="{ref}" t="b"><v>{int(value)}</v></c>'
    if isinstance(value, datetime):
        return f'<c r="{ref}" s="{STYLE_DATETIME}"><v>{excel_serial(value, date1904=date1904)!r}</v></c>'
    if isinstance(value, date):
        return f'<c r="{ref}" s="{STYLE_DATE}"><v>{excel_serial(value, date1904=date1904)!r}</v></c>'
    if isinstance(value, (int, float)):
        return f'<c r="{ref}"><v>{value!r}</v></c>'
    text = str(value)
    if shared is not None:
        shared.append(text)
        return f'<c r="{ref}" t="s"><v>{len(shared) - 1}</v></c>'
    return f'<c r="{ref}" t="inlineStr"><is><t xml:space="preserve">{escape(text)}</t></is></c>'


def _sheet_xml(rows: list[list[Any] | None], shared: list[str] | None, date1904: bool) -> str:
    parts = [f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n<worksheet xmlns="{MAIN_NS}"><sheetData>']
    for row_index, row in enumerate(rows):
        if row is None:
            continue
        cells = [
            _cell_xml(f"{column_letter(col)}{row_index + 1}", value, shared, date1904)
            for col, value in enumerate(row)
            if value is not None
        ]
        parts.append(f'<row r="{row_index + 1}">{"".join(cells)}</row>')
    parts.append("</sheetData></worksheet>")
    return "".join(parts)


def _styles_xml() -> str:
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<styleSheet xmlns="{MAIN_NS}">
  <numFmts count="1"><numFmt numFmtId="164" formatCode="dd/mm/yyyy;@"/></numFmts>
  <cellXfs count="5">
    <xf numFmtId="0"/>
    <xf numFmtId="14" applyNumberFormat="1"/>
    <xf numFmtId="22" applyNumberFormat="1"/>
    <xf numFmtId="164" applyNumberFormat="1"/>
    <xf numFmtId="10" applyNumberFormat="1"/>
  </cellXfs>
</styleSheet>
"""


def build_xlsx(
    sheets: list[tuple[str, list[list[Any] | None]]],
    *,
    date1904: bool = False,
    shared_strings: bool = False,
) -> bytes:
    """Assemble a minimal xlsx workbook in memory. Row 0 of each sheet is the header row."""
    shared: list[str] | None = [] if shared_strings else None
    sheet_parts = [_sheet_xml(rows, shared, date1904) for _name, rows in sheets]

    workbook_pr = '<workbookPr date1904="1"/>' if date1904 else "<workbookPr/>"
    quoted_names = [escape(name, {'"': "&quot;"}) for name, _rows in sheets]
    sheet_entries = "".join(
        f'<sheet name="{name}" sheetId="{i + 1}" r:id="rId{i + 1}"/>'
        for i, name in enumerate(quoted_names)
    )
    workbook = (
        f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<workbook xmlns="{MAIN_NS}" xmlns:r="{REL_NS}">{workbook_pr}<sheets>{sheet_entries}</sheets></workbook>'
    )
    rels = "".join(
        f'<Relationship Id="rId{i + 1}" '
        f'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/worksheet" '
        f'Target="worksheets/sheet{i + 1}.xml"/>'
        for i in range(len(sheets))
    )
    workbook_rels = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
        f"{rels}</Relationships>"
    )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("xl/workbook.xml", workbook)
        archive.writestr("xl/_rels/workbook.xml.rels", workbook_rels)
        archive.writestr("xl/styles.xml", _styles_xml())
        for i, part in enumerate(sheet_parts):
            archive.writestr(f"xl/worksheets/sheet{i + 1}.xml", part)
        if shared is not None:
            items = "".join(f"<si><t>{escape(text)}</t></si>" for text in shared)
            archive.writestr(
                "xl/sharedStrings.xml",
                f'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
                f'<sst xmlns="{MAIN_NS}" count="{len(shared)}" uniqueCount="{len(shared)}">{items}</sst>',
            )
    return buffer.getvalue()


def damage_member(content: bytes, member: str) -> bytes:
    """Overwrite the compressed stream of ``member`` with an invalid deflate block."""
    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        info = archive.getinfo(member)
    offset = info.header_offset
    name_len = int.from_bytes(content[offset + 26 : offset + 28], "little")
    extra_len = int.from_bytes(content[offset + 28 : offset + 30], "little")
    start = offset + 30 + name_len + extra_len
    end = start + info.compress_size
    return content[:start] + b"\xff" * (end - start) + content[end:]


def replace_member(content: bytes, member: str, data: str) -> bytes:
    source = zipfile.ZipFile(io.BytesIO(content))
    buffer = io.BytesIO()
    with source, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as target:
        for info in source.infolist():
            body = data if info.filename == member else source.read(info.filename)
            target.writestr(info.filename, body)
    return buffer.getvalue()
