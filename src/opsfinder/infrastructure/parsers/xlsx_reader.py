from __future__ import annotations

import io
import logging
import re
import zipfile
import zlib
from collections.abc import Iterator
from datetime import datetime
from pathlib import PurePosixPath
from xml.etree import ElementTree as ET

from opsfinder.domain.models.raw_cell import (
    BlankCell,
    BooleanCell,
    ErrorCell,
    FormulaCell,
    NumberCell,
    RawCell,
    TextCell,
    UnknownCell,
    ValueCell,
)

logger = logging.getLogger(__name__)

WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"
SHARED_STRINGS_PART = "xl/sharedStrings.xml"
STYLES_PART = "xl/styles.xml"

# Built-in number formats that render as dates or times.
BUILTIN_DATE_FORMAT_IDS = frozenset(
    list(range(14, 23)) + list(range(27, 37)) + list(range(45, 48)) + list(range(50, 59))
)

_QUOTED = re.compile(r'"[^"]*"')
_ESCAPED = re.compile(r"\\.")
_BRACKETED = re.compile(r"\[[^\]]*\]")
_DATE_TOKENS = re.compile(r"[ymdhs]", re.IGNORECASE)
_NUMBER_PLACEHOLDERS = re.compile(r"[#?]")
_EXCEL_EPOCH_1900 = datetime(1899, 12, 30)
_EXCEL_EPOCH_1904 = datetime(1904, 1, 1)

RowCells = dict[int, RawCell]

# Damaged deflate streams, truncated members and malformed numeric attributes.
_READ_ERRORS = (
    ET.ParseError,
    KeyError,
    ValueError,
    EOFError,
    NotImplementedError,
    RuntimeError,
    zipfile.BadZipFile,
    zlib.error,
)


class XlsxFormatError(Exception):
    """Raised when bytes are not a readable xlsx container."""


def is_date_format_code(format_code: str) -> bool:
    """True when a custom number format displays a date or a time."""
    if not format_code:
        return False
    # Only the positive section decides how a value is shown.
    section = format_code.split(";", 1)[0]
    stripped = _BRACKETED.sub("", _ESCAPED.sub("", _QUOTED.sub("", section)))
    if _NUMBER_PLACEHOLDERS.search(stripped):
        return False
    return bool(_DATE_TOKENS.search(stripped))


def column_index_from_ref(cell_ref: str | None) -> int:
    """Zero-based column index of an ``A1`` style reference, or -1 when absent."""
    if not cell_ref:
        return -1
    letters = "".join(ch for ch in str(cell_ref) if ch.isalpha()).upper()
    if not letters:
        return -1
    total = 0
    for ch in letters:
        total = total * 26 + (ord(ch) - ord("A") + 1)
    return total - 1


def _local_tag(tag: str) -> str:
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _joined_text(node: ET.Element) -> str:
    # Plain <t> or rich-text <r><t> runs; phonetic <rPh> hints are not display text.
    parts: list[str] = []
    for child in node:
        tag = _local_tag(child.tag)
        if tag == "t":
            parts.append(child.text or "")
        elif tag == "r":
            for run_part in child:
                if _local_tag(run_part.tag) == "t":
                    parts.append(run_part.text or "")
    return "".join(parts)


class XlsxWorkbook:
    """Read-only view over the parts of an xlsx zip container."""

    def __init__(self, archive: zipfile.ZipFile) -> None:
        self._archive = archive
        self._names = set(archive.namelist())
        if WORKBOOK_PART not in self._names:
            raise XlsxFormatError("missing xl/workbook.xml")
        workbook_root = self._read_xml(WORKBOOK_PART)
        self.epoch_1904 = self._read_epoch_flag(workbook_root)
        self.sheets = self._read_sheet_entries(workbook_root)
        self.shared_strings = self._read_shared_strings()
        self.date_styles = self._read_date_styles()

    @classmethod
    def open(cls, content: bytes) -> XlsxWorkbook:
        try:
            archive = zipfile.ZipFile(io.BytesIO(content), "r")
        except (zipfile.BadZipFile, ValueError, EOFError) as exc:
            raise XlsxFormatError(f"not a zip container: {exc}") from exc
        try:
            return cls(archive)
        except _READ_ERRORS as exc:
            archive.close()
            raise XlsxFormatError(str(exc)) from exc
        except XlsxFormatError:
            archive.close()
            raise

    def close(self) -> None:
        self._archive.close()

    def __enter__(self) -> XlsxWorkbook:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def iter_rows(self, sheet_path: str) -> Iterator[tuple[int, RowCells]]:
        """Yield ``(zero-based row index, {zero-based column: cell})`` in sheet order."""
        try:
            with self._archive.open(sheet_path, "r") as stream:
                row_seq = -1
                for _event, elem in ET.iterparse(stream, events=("end",)):
                    if _local_tag(elem.tag) != "row":
                        continue
                    row_seq += 1
                    raw_r = elem.attrib.get("r")
                    row_index = int(raw_r) - 1 if raw_r and raw_r.isdecimal() else row_seq
                    row_seq = row_index
                    yield row_index, self._read_row_cells(elem)
                    elem.clear()
        except _READ_ERRORS as exc:
            raise XlsxFormatError(f"unreadable sheet part {sheet_path}: {exc}") from exc

    def _read_row_cells(self, row_elem: ET.Element) -> RowCells:
        cells: RowCells = {}
        col_seq = -1
        for child in list(row_elem):
            if _local_tag(child.tag) != "c":
                continue
            col_seq += 1
            ref = child.attrib.get("r")
            col_idx = column_index_from_ref(ref)
            if col_idx < 0:
                col_idx = col_seq
            col_seq = col_idx
            cells[col_idx] = self._read_cell(child, ref or f"#{col_idx}")
        return cells

    def _read_cell(self, node: ET.Element, ref: str) -> RawCell:
        cell_type = (node.attrib.get("t") or "n").strip()
        formula: str | None = None
        value_text: str | None = None
        inline: ET.Element | None = None
        for child in list(node):
            tag = _local_tag(child.tag)
            if tag == "f":
                formula = child.text or ""
            elif tag == "v":
                value_text = child.text
            elif tag == "is":
                inline = child

        try:
            value = self._typed_value(cell_type, value_text, inline, self._is_date_style(node))
        except (ValueError, IndexError) as exc:
            logger.warning("Unreadable value in cell %s (type %s): %s", ref, cell_type, exc)
            value = UnknownCell(type_code=cell_type)

        if formula is not None:
            computed = None if value_text is None or isinstance(value, BlankCell) else value
            return FormulaCell(formula=formula, result=computed)
        return value

    def _typed_value(
        self,
        cell_type: str,
        value_text: str | None,
        inline: ET.Element | None,
        date_formatted: bool,
    ) -> ValueCell:
        if cell_type == "inlineStr":
            return TextCell(_joined_text(inline)) if inline is not None else BlankCell()
        if value_text is None:
            return BlankCell()
        if cell_type == "s":
            return TextCell(self.shared_strings[int(value_text)])
        if cell_type == "str":
            return TextCell(value_text)
        if cell_type == "b":
            return BooleanCell(value_text.strip() in {"1", "true", "TRUE"})
        if cell_type == "e":
            return ErrorCell(code=value_text)
        if cell_type == "n":
            return NumberCell(float(value_text), date_formatted=date_formatted)
        if cell_type == "d":
            return NumberCell(self._iso_to_serial(value_text), date_formatted=True)
        return UnknownCell(type_code=cell_type)

    def _is_date_style(self, node: ET.Element) -> bool:
        raw = node.attrib.get("s")
        if not raw or not raw.isdecimal():
            return False
        return int(raw) in self.date_styles

    def _iso_to_serial(self, text: str) -> float:
        moment = datetime.fromisoformat(text.strip().rstrip("Z"))
        epoch = _EXCEL_EPOCH_1904 if self.epoch_1904 else _EXCEL_EPOCH_1900
        delta = moment.replace(tzinfo=None) - epoch
        return delta.days + delta.seconds / 86400.0

    def _read_xml(self, part: str) -> ET.Element:
        return ET.fromstring(self._archive.read(part))

    @staticmethod
    def _read_epoch_flag(workbook_root: ET.Element) -> bool:
        for node in workbook_root.iter():
            if _local_tag(node.tag) == "workbookPr":
                return str(node.attrib.get("date1904", "")).strip().lower() in {"1", "true"}
        return False

    def _read_sheet_entries(self, workbook_root: ET.Element) -> list[tuple[str, str]]:
        rel_map: dict[str, str] = {}
        if WORKBOOK_RELS_PART in self._names:
            for rel in self._read_xml(WORKBOOK_RELS_PART):
                if _local_tag(rel.tag) != "Relationship":
                    continue
                rel_id = str(rel.attrib.get("Id") or "").strip()
                target = str(rel.attrib.get("Target") or "").strip()
                if rel_id and target:
                    rel_map[rel_id] = target

        entries: list[tuple[str, str]] = []
        for node in workbook_root.iter():
            if _local_tag(node.tag) != "sheet":
                continue
            name = str(node.attrib.get("name") or "").strip() or f"Sheet{len(entries) + 1}"
            rel_id = ""
            for key in node.attrib.keys():
                if key.endswith("}id") or key == "r:id":
                    rel_id = str(node.attrib.get(key) or "").strip()
                    break
            target = rel_map.get(rel_id, "")
            if not target:
                continue
            entries.append((name, self._resolve_target(target)))
        return entries

    @staticmethod
    def _resolve_target(target: str) -> str:
        normalized = target.replace("\\", "/").strip()
        if normalized.startswith("/"):
            normalized = normalized.lstrip("/")
        if not normalized.startswith("xl/"):
            normalized = f"xl/{normalized}"
        return str(PurePosixPath(normalized))

    def _read_shared_strings(self) -> list[str]:
        if SHARED_STRINGS_PART not in self._names:
            return []
        values: list[str] = []
        with self._archive.open(SHARED_STRINGS_PART, "r") as stream:
            for _event, elem in ET.iterparse(stream, events=("end",)):
                if _local_tag(elem.tag) != "si":
                    continue
                values.append(_joined_text(elem))
                elem.clear()
        return values

    def _read_date_styles(self) -> frozenset[int]:
        if STYLES_PART not in self._names:
            return frozenset()
        root = self._read_xml(STYLES_PART)
        custom_formats: dict[int, str] = {}
        cell_xfs: ET.Element | None = None
        for node in root:
            tag = _local_tag(node.tag)
            if tag == "numFmts":
                for fmt in node:
                    raw_id = fmt.attrib.get("numFmtId", "")
                    if raw_id.isdecimal():
                        custom_formats[int(raw_id)] = fmt.attrib.get("formatCode", "")
            elif tag == "cellXfs":
                cell_xfs = node
        if cell_xfs is None:
            return frozenset()

        date_styles: set[int] = set()
        for style_index, xf in enumerate(x for x in cell_xfs if _local_tag(x.tag) == "xf"):
            raw_fmt = xf.attrib.get("numFmtId", "0")
            if not raw_fmt.isdecimal():
                continue
            fmt_id = int(raw_fmt)
            if fmt_id in custom_formats:
                is_date = is_date_format_code(custom_formats[fmt_id])
            else:
                is_date = fmt_id in BUILTIN_DATE_FORMAT_IDS
            if is_date:
                date_styles.add(style_index)
        return frozenset(date_styles)
