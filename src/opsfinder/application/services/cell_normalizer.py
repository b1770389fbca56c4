from __future__ import annotations

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal

from opsfinder.domain.models.raw_cell import (
    BlankCell,
    BooleanCell,
    ErrorCell,
    FormulaCell,
    NumberCell,
    RawCell,
    TextCell,
    UnknownCell,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
DATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
ERROR_TEXT = "ERROR"
FRACTION_QUANTUM = Decimal("1e-10")

_EPOCH_1900 = datetime(1899, 12, 30)
# Serials below 60 predate the phantom 1900-02-29 that Excel inherited from Lotus.
_EPOCH_1900_EARLY = datetime(1899, 12, 31)
_EPOCH_1904 = datetime(1904, 1, 1)


def format_number(value: float) -> str:
    if not math.isfinite(value):
        return ""
    if value.is_integer():
        return str(int(value))
    quantized = Decimal(repr(value)).quantize(FRACTION_QUANTUM, rounding=ROUND_HALF_EVEN)
    text = format(quantized, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def serial_to_datetime(serial: float, *, epoch_1904: bool = False) -> datetime:
    if not math.isfinite(serial) or serial < 0:
        raise ValueError(f"serial {serial!r} is not a valid date")
    if epoch_1904:
        epoch = _EPOCH_1904
    elif serial < 60:
        epoch = _EPOCH_1900_EARLY
    else:
        epoch = _EPOCH_1900
    days = math.floor(serial)
    seconds = round((serial - days) * 86400)
    return epoch + timedelta(days=days, seconds=seconds)


def format_date(serial: float, *, epoch_1904: bool = False) -> str:
    moment = serial_to_datetime(serial, epoch_1904=epoch_1904)
    if moment.hour == 0 and moment.minute == 0 and moment.second == 0:
        return moment.strftime(DATE_FORMAT)
    return moment.strftime(DATE_TIME_FORMAT)


def _text(cell: TextCell, epoch_1904: bool) -> str:
    return cell.value.strip()


def _number(cell: NumberCell, epoch_1904: bool) -> str:
    if cell.date_formatted:
        try:
            return format_date(cell.value, epoch_1904=epoch_1904)
        except (ValueError, OverflowError):
            return format_number(cell.value)
    return format_number(cell.value)


def _boolean(cell: BooleanCell, epoch_1904: bool) -> str:
    return "true" if cell.value else "false"


def _blank(cell: BlankCell, epoch_1904: bool) -> str:
    return ""


def _error(cell: ErrorCell, epoch_1904: bool) -> str:
    return ERROR_TEXT


def _unknown(cell: UnknownCell, epoch_1904: bool) -> str:
    return ""


def _formula(cell: FormulaCell, epoch_1904: bool) -> str:
    result = cell.result
    if result is None:
        logger.warning("Formula has no computed value, indexing as empty: =%s", cell.formula)
        return ""
    # An error result means the formula failed to evaluate.
    if isinstance(result, (ErrorCell, UnknownCell)):
        return ""
    return _HANDLERS[type(result)](result, epoch_1904)


_HANDLERS: dict[type, Callable[..., str]] = {
    TextCell: _text,
    NumberCell: _number,
    BooleanCell: _boolean,
    FormulaCell: _formula,
    BlankCell: _blank,
    ErrorCell: _error,
    UnknownCell: _unknown,
}


def normalize_cell(cell: RawCell | None, *, epoch_1904: bool = False, ref: str = "") -> str:
    """Canonical display string of one cell. Never raises."""
    if cell is None:
        return ""
    try:
        handler = _HANDLERS.get(type(cell), _unknown)
        return handler(cell, epoch_1904)
    except Exception as exc:
        logger.warning("Error reading cell value %s: %s", ref or type(cell).__name__, exc)
        return ""
