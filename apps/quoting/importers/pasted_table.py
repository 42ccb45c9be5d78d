"""
Pasted Table Importer

Turns text copied from a spreadsheet (tab, semicolon or comma separated, first
row is the header) into quote columns and items, and merges the result into
a quote.

Column types are inferred from the data: a column is a number when every
non-blank value parses as one (English 8,000.5 and Vietnamese 8.000,5 styles
are both accepted), a date when at least 70% of its values look like dates,
and text otherwise. Description, price and quantity headers map onto the
quote's fixed columns.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from apps.quoting.enums import CalculationType, PasteMode, ValueType
from apps.quoting.exceptions import TableImportError
from apps.quoting.helpers import ZERO
from apps.quoting.quote import (
    DESCRIPTION_COLUMN_ID,
    QUANTITY_COLUMN_ID,
    RESERVED_COLUMN_IDS,
    UNIT_PRICE_COLUMN_ID,
    Calculation,
    Column,
    Item,
    Quote,
    Section,
    ensure_reserved_columns,
    new_column_id,
    new_item_id,
)
from apps.quoting.services.schema_editor import normalize_items

logger = logging.getLogger(__name__)

DESCRIPTION_HEADERS = ("description", "item", "service", "name", "title", "mô tả")
PRICE_HEADERS = ("unit price", "price", "amount", "cost", "đơn giá", "giá")
QUANTITY_HEADERS = ("quantity", "qty", "số lượng", "sl")

FIELD_SEPARATORS = ("\t", ";", ",")

# Share of non-blank values that must be dates for a date column
DATE_COLUMN_THRESHOLD = 0.7
MIN_DATE_YEAR = 1900
MAX_DATE_YEAR = 2100

# Month-first is tried before day-first, so 03/04/2024 reads as March 4th
DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%m-%d-%Y", "%d-%m-%Y")

_LINE_SPLIT_RE = re.compile(r"\r?\n")
_DAYS_SUFFIX_RE = re.compile(r"\s*\(ngày\)$", re.IGNORECASE)
_NUMBER_TEXT_RE = re.compile(r"^[+-]?[\d.,]*\d[\d.,]*$")
_DATE_SHAPE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}|\d{1,2}/\d{1,2}/\d{4}|\d{2}-\d{2}-\d{4})$")


def parse_number(text: Any) -> Optional[Decimal]:
    """
    Parse a pasted number, or return None when the text is not one.

    When both ``.`` and ``,`` appear the last one is the decimal separator. A
    single separator is a thousands separator only when it splits 1-3 leading
    digits from exactly three (``1.000``, ``12,500``); otherwise it is the
    decimal separator (``1,5``, ``0.125``). Repeated separators must all be
    thousands separators (``1.000.000``).
    """
    if text is None:
        return None
    cleaned = _DAYS_SUFFIX_RE.sub("", str(text).strip())
    if not _NUMBER_TEXT_RE.match(cleaned):
        return None

    sign = ""
    if cleaned[0] in "+-":
        sign, cleaned = cleaned[0], cleaned[1:]

    if "." in cleaned and "," in cleaned:
        decimal_sep = "." if cleaned.rfind(".") > cleaned.rfind(",") else ","
        thousands_sep = "," if decimal_sep == "." else "."
        whole, _, fraction = cleaned.rpartition(decimal_sep)
        if decimal_sep in whole or not _is_grouped(whole, thousands_sep):
            return None
        cleaned = whole.replace(thousands_sep, "") + "." + fraction
    elif "." in cleaned or "," in cleaned:
        separator = "." if "." in cleaned else ","
        if cleaned.count(separator) > 1 or _is_grouped(cleaned, separator):
            if not _is_grouped(cleaned, separator):
                return None
            cleaned = cleaned.replace(separator, "")
        else:
            cleaned = cleaned.replace(separator, ".")

    try:
        number = Decimal(sign + cleaned)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _is_grouped(text: str, separator: str) -> bool:
    """True for thousands-grouped digits such as 1,000 or 12.500.000"""
    if separator not in text:
        return text.isdigit()
    return re.fullmatch(rf"[1-9]\d{{0,2}}(?:{re.escape(separator)}\d{{3}})+", text) is not None


def parse_date(text: Any) -> Optional[date]:
    if text is None:
        return None
    cleaned = str(text).strip()
    if not _DATE_SHAPE_RE.match(cleaned):
        return None
    for date_format in DATE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, date_format).date()
        except ValueError:
            continue
        if MIN_DATE_YEAR < parsed.year < MAX_DATE_YEAR:
            return parsed
    return None


def infer_value_type(values: Iterable[str]) -> ValueType:
    non_blank = [value for value in values if value]
    if not non_blank:
        return ValueType.TEXT
    if all(parse_number(value) is not None for value in non_blank):
        return ValueType.NUMBER
    dates = sum(1 for value in non_blank if parse_date(value) is not None)
    if dates / len(non_blank) >= DATE_COLUMN_THRESHOLD:
        return ValueType.DATE
    return ValueType.TEXT


def _header_matches(header: str, keywords: Iterable[str]) -> bool:
    normalized = " ".join(header.lower().split())
    return any(
        re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", normalized)
        for keyword in keywords
    )


def convert_cell(value: Any, value_type: ValueType) -> Any:
    """Convert a pasted (or previously converted) cell to the column's type."""
    if value_type == ValueType.NUMBER:
        if isinstance(value, Decimal):
            return value
        number = parse_number(value)
        return number if number is not None else ZERO
    if value_type == ValueType.DATE:
        if value is None or value == "":
            return None
        parsed = parse_date(value)
        return parsed.isoformat() if parsed else str(value)
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value, "f")
    return str(value)


@dataclass
class PastedTable:
    columns: List[Column] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)

    def values(self, item: Item) -> List[Any]:
        """Cell values of ``item`` in pasted column order"""
        return [_cell(item, column.id) for column in self.columns]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [column.to_dict() for column in self.columns],
            "items": [item.to_dict() for item in self.items],
        }


def _cell(item: Item, column_id: str) -> Any:
    if column_id == DESCRIPTION_COLUMN_ID:
        return item.description
    if column_id == UNIT_PRICE_COLUMN_ID:
        return item.unit_price
    return item.custom_fields.get(column_id)


def _set_cell(item: Item, column: Column, value: Any) -> None:
    if column.id == DESCRIPTION_COLUMN_ID:
        item.description = convert_cell(value, ValueType.TEXT)
    elif column.id == UNIT_PRICE_COLUMN_ID:
        item.unit_price = convert_cell(value, ValueType.NUMBER)
    else:
        item.custom_fields[column.id] = convert_cell(value, column.value_type)


def _unique_name(name: str, taken: set) -> str:
    candidate = name
    suffix = 1
    while candidate.lower() in taken:
        candidate = f"{name} ({suffix})"
        suffix += 1
    taken.add(candidate.lower())
    return candidate


def _unique_quantity_id(taken: set) -> str:
    candidate = QUANTITY_COLUMN_ID
    suffix = 1
    while candidate in taken:
        candidate = f"{QUANTITY_COLUMN_ID}_{suffix}"
        suffix += 1
    return candidate


def _fresh_id(id_factory: Callable[[], str], taken: set) -> str:
    column_id = id_factory()
    while column_id in taken:
        column_id = id_factory()
    return column_id


def read_grid(text: str) -> Tuple[List[str], pd.DataFrame]:
    """
    Split pasted text into a DataFrame of trimmed strings.

    Returns the header names (from the first non-blank line) and the data
    rows; rows that are blank in every cell are dropped.
    """
    if text is None or not text.strip():
        raise TableImportError("No data to paste")

    lines = [line for line in _LINE_SPLIT_RE.split(text) if line.strip()]
    separator = next((sep for sep in FIELD_SEPARATORS if sep in lines[0]), "\t")
    rows = [line.split(separator) for line in lines]
    width = max(len(row) for row in rows)
    rows = [[cell.strip() for cell in row] + [""] * (width - len(row)) for row in rows]

    header = [cell or f"Column {index + 1}" for index, cell in enumerate(rows[0])]
    grid = pd.DataFrame(rows[1:], columns=range(width), dtype=object)
    grid = grid[(grid != "").any(axis=1)]
    return header, grid


def import_pasted_table(
    text: str, id_factory: Callable[[], str] = new_column_id
) -> PastedTable:
    """
    Parse pasted spreadsheet text into typed columns and fresh items.

    Args:
        text: Clipboard text, first row is the header
        id_factory: Source of fresh column ids

    Returns:
        PastedTable

    Raises:
        TableImportError: blank input or a header without data rows
    """
    header, grid = read_grid(text)
    if grid.empty:
        raise TableImportError("Pasted table has a header row but no data rows")

    value_types = [infer_value_type(grid[index].tolist()) for index in range(len(header))]

    description_index = next(
        (index for index, name in enumerate(header) if _header_matches(name, DESCRIPTION_HEADERS)),
        0,
    )
    price_index = next(
        (
            index
            for index, name in enumerate(header)
            if index != description_index
            and value_types[index] == ValueType.NUMBER
            and _header_matches(name, PRICE_HEADERS)
            and not _header_matches(name, QUANTITY_HEADERS)
        ),
        None,
    )

    taken_ids: set = set()
    taken_names: set = set()
    columns = []
    for index, name in enumerate(header):
        value_type = value_types[index]
        calculation = None
        if index == description_index:
            column_id, value_type = DESCRIPTION_COLUMN_ID, ValueType.TEXT
        elif index == price_index:
            column_id = UNIT_PRICE_COLUMN_ID
            calculation = Calculation(type=CalculationType.SUM)
        elif _header_matches(name, QUANTITY_HEADERS):
            column_id = _unique_quantity_id(taken_ids)
        else:
            column_id = _fresh_id(id_factory, taken_ids)
        taken_ids.add(column_id)
        columns.append(
            Column(
                id=column_id,
                name=_unique_name(name, taken_names),
                value_type=value_type,
                calculation=calculation,
            )
        )

    items = []
    for _, row in grid.iterrows():
        item = Item(id=new_item_id())
        for index, column in enumerate(columns):
            _set_cell(item, column, row[index])
        items.append(item)

    logger.info(
        "Parsed pasted table with %d columns and %d rows", len(columns), len(items)
    )
    return PastedTable(columns=columns, items=items)


def _map_by_position(table: PastedTable, columns: List[Column]) -> List[Item]:
    """Re-key pasted items onto ``columns``, pasted column j feeding schema column j"""
    mapped = []
    for pasted_item in table.items:
        item = Item(id=new_item_id())
        for column, value in zip(columns, table.values(pasted_item)):
            _set_cell(item, column, value)
        mapped.append(item)
    return mapped


def _columns_to_append(
    table: PastedTable, existing: List[Column], id_factory: Callable[[], str]
) -> List[Column]:
    taken_ids = {column.id for column in existing}
    taken_names = {column.name.lower() for column in existing}
    appended = []
    for column in table.columns:
        column_id = column.id
        if column_id in taken_ids or column_id in RESERVED_COLUMN_IDS:
            column_id = _fresh_id(id_factory, taken_ids)
        taken_ids.add(column_id)
        appended.append(
            Column(
                id=column_id,
                name=_unique_name(column.name, taken_names),
                value_type=column.value_type,
            )
        )
    return appended


def apply_pasted_table(
    quote: Quote,
    section_index: int,
    table: PastedTable,
    mode,
    id_factory: Callable[[], str] = new_column_id,
) -> Quote:
    """
    Merge a pasted table into one section of ``quote`` and return the new quote.

    - replace: the section's items become the pasted rows. Pasting into the
      first section also installs the pasted columns as the schema; later
      sections keep the schema and take pasted columns by position.
    - add-rows: pasted rows are appended, taking columns by position. The
      paste must have as many columns as the schema.
    - add-columns: every pasted column is appended to the schema and the
      pasted rows are appended as new items.
    """
    mode = PasteMode(mode)
    updated = quote.copy()

    if section_index == 0 and not updated.sections:
        updated.sections.append(Section())
    if not (0 <= section_index < len(updated.sections)):
        raise TableImportError(f"Section {section_index} does not exist")
    section = updated.sections[section_index]

    if mode == PasteMode.REPLACE:
        if section_index == 0:
            updated.columns = ensure_reserved_columns(list(table.columns))
            section.items = copy.deepcopy(table.items)
        else:
            section.items = _map_by_position(table, updated.columns)

    elif mode == PasteMode.ADD_ROWS:
        if len(table.columns) != len(updated.columns):
            raise TableImportError(
                f"Pasted data has {len(table.columns)} columns, the table has "
                f"{len(updated.columns)}; add rows needs the same number of columns"
            )
        section.items.extend(_map_by_position(table, updated.columns))

    else:
        appended = _columns_to_append(table, updated.columns, id_factory)
        updated.columns.extend(appended)
        section.items.extend(_map_by_position(table, appended))

    logger.info(
        "Applied pasted table (%s) to section %d of quote %s",
        mode.value,
        section_index,
        quote.id,
    )
    return normalize_items(updated)

