from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class TextCell:
    value: str


@dataclass(frozen=True, slots=True)
class NumberCell:
    value: float
    date_formatted: bool = False


@dataclass(frozen=True, slots=True)
class BooleanCell:
    value: bool


@dataclass(frozen=True, slots=True)
class BlankCell:
    pass


@dataclass(frozen=True, slots=True)
class ErrorCell:
    code: str = ""


@dataclass(frozen=True, slots=True)
class UnknownCell:
    type_code: str = ""


# A formula never nests another formula: ``result`` is the computed value, or None
# when the workbook carries no computed value for it.
ValueCell = Union[TextCell, NumberCell, BooleanCell, BlankCell, ErrorCell, UnknownCell]


@dataclass(frozen=True, slots=True)
class FormulaCell:
    formula: str
    result: ValueCell | None


RawCell = Union[TextCell, NumberCell, BooleanCell, FormulaCell, BlankCell, ErrorCell, UnknownCell]
