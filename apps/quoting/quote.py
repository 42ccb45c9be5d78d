"""
Quote Data Model

Plain dataclasses describing the quote table the engine computes over:
ordered Sections of Items, and an ordered Column schema shared by every Item.

The persisted/transport shape uses the dashboard's camelCase keys
(``unitPrice``, ``customFields``, ``rowFormula``, ``grandTotalFormula``);
``from_dict`` / ``to_dict`` translate between that shape and these classes.
"""

from __future__ import annotations

import copy
import re
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional

from apps.quoting.enums import CalculationType, ValueType
from apps.quoting.helpers import ZERO, decimal_to_float, to_decimal

DESCRIPTION_COLUMN_ID = "description"
UNIT_PRICE_COLUMN_ID = "unitPrice"
RESERVED_COLUMN_IDS = (DESCRIPTION_COLUMN_ID, UNIT_PRICE_COLUMN_ID)

# Fixed id given to pasted quantity columns, kept for compatibility with saved quotes
QUANTITY_COLUMN_ID = "quantity"

# Every generated column id starts with this prefix; custom aggregate formulas
# find their column references by it.
COLUMN_ID_PREFIX = "col"

_WHITESPACE_RE = re.compile(r"\s+")


def new_column_id() -> str:
    return f"{COLUMN_ID_PREFIX}_{uuid.uuid4().hex[:8]}"


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:12]}"


def new_section_id() -> str:
    return f"section_{uuid.uuid4().hex[:12]}"


def default_value_for(value_type: str) -> Any:
    """Value an Item holds for a column it has no data for yet."""
    if value_type == ValueType.NUMBER:
        return 0
    if value_type == ValueType.DATE:
        return None
    return ""


@dataclass
class Calculation:
    """Aggregate shown for a number column in the summary panel"""

    type: CalculationType = CalculationType.NONE
    formula: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Calculation"]:
        if not data:
            return None
        return cls(
            type=CalculationType(data.get("type") or CalculationType.NONE),
            formula=data.get("formula") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value}
        if self.formula is not None:
            data["formula"] = self.formula
        return data


@dataclass
class Column:
    id: str
    name: str
    value_type: ValueType = ValueType.TEXT
    calculation: Optional[Calculation] = None
    row_formula: Optional[str] = None
    date_format: Optional[str] = None

    @property
    def is_number(self) -> bool:
        return self.value_type == ValueType.NUMBER

    @property
    def is_reserved(self) -> bool:
        return self.id in RESERVED_COLUMN_IDS

    @property
    def calculation_type(self) -> CalculationType:
        if self.calculation is None:
            return CalculationType.NONE
        return self.calculation.type

    @property
    def has_calculation(self) -> bool:
        """True when the column takes part in the summary panel"""
        return self.is_number and self.calculation_type != CalculationType.NONE

    @property
    def has_row_formula(self) -> bool:
        return self.is_number and bool(self.row_formula and self.row_formula.strip())

    @property
    def variable_name(self) -> str:
        """Name under which the column's aggregate is offered to the grand total formula"""
        return _WHITESPACE_RE.sub("", self.name)

    @property
    def short_name(self) -> str:
        """``@shortname`` used by the row formula editor"""
        return _WHITESPACE_RE.sub("", self.name.lower())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            value_type=ValueType(data.get("type") or ValueType.TEXT),
            calculation=Calculation.from_dict(data.get("calculation")),
            row_formula=data.get("rowFormula") or None,
            date_format=data.get("dateFormat") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.value_type.value,
        }
        if self.calculation is not None:
            data["calculation"] = self.calculation.to_dict()
        if self.row_formula:
            data["rowFormula"] = self.row_formula
        if self.date_format:
            data["dateFormat"] = self.date_format
        return data


@dataclass
class Item:
    id: str = field(default_factory=new_item_id)
    description: str = ""
    unit_price: Decimal = ZERO
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        return cls(
            id=str(data.get("id") or new_item_id()),
            description=str(data.get("description") or ""),
            unit_price=to_decimal(data.get("unitPrice")),
            custom_fields=dict(data.get("customFields") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "unitPrice": decimal_to_float(self.unit_price),
            "customFields": {
                key: decimal_to_float(value)
                for key, value in self.custom_fields.items()
            },
        }


@dataclass
class Section:
    id: str = field(default_factory=new_section_id)
    name: str = ""
    items: List[Item] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            id=str(data.get("id") or new_section_id()),
            name=str(data.get("name") or ""),
            items=[Item.from_dict(item) for item in data.get("items") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
        }


def default_columns() -> List[Column]:
    """Schema of a brand new quote: the two reserved columns"""
    return [
        Column(id=DESCRIPTION_COLUMN_ID, name="Description", value_type=ValueType.TEXT),
        Column(
            id=UNIT_PRICE_COLUMN_ID,
            name="Unit Price",
            value_type=ValueType.NUMBER,
            calculation=Calculation(type=CalculationType.SUM),
        ),
    ]


def ensure_reserved_columns(columns: List[Column]) -> List[Column]:
    """
    Return ``columns`` with the reserved description / unit price columns present.

    Missing reserved columns are inserted at the front in their default shape;
    an existing reserved column keeps its position and its configuration except
    for its value type, which is forced back to the reserved one.
    """
    defaults = {column.id: column for column in default_columns()}
    result = list(columns)
    present = {column.id for column in result}

    for position, reserved_id in enumerate(RESERVED_COLUMN_IDS):
        if reserved_id not in present:
            result.insert(position, defaults[reserved_id])

    for index, column in enumerate(result):
        if column.is_reserved and column.value_type != defaults[column.id].value_type:
            result[index] = replace(column, value_type=defaults[column.id].value_type)
    return result


@dataclass
class Quote:
    id: str = ""
    columns: List[Column] = field(default_factory=default_columns)
    sections: List[Section] = field(default_factory=list)
    grand_total_formula: Optional[str] = None

    def column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def column_index(self, column_id: str) -> int:
        for index, column in enumerate(self.columns):
            if column.id == column_id:
                return index
        return -1

    @property
    def number_columns(self) -> List[Column]:
        return [column for column in self.columns if column.is_number]

    def iter_items(self) -> Iterator[Item]:
        """Every item, section-then-item order"""
        for section in self.sections:
            yield from section.items

    def copy(self) -> "Quote":
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        columns = [Column.from_dict(column) for column in data.get("columns") or []]
        return cls(
            id=str(data.get("id") or ""),
            columns=ensure_reserved_columns(columns),
            sections=[Section.from_dict(section) for section in data.get("sections") or []],
            grand_total_formula=data.get("grandTotalFormula") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "columns": [column.to_dict() for column in self.columns],
            "sections": [section.to_dict() for section in self.sections],
        }
        if self.grand_total_formula is not None:
            data["grandTotalFormula"] = self.grand_total_formula
        return data
