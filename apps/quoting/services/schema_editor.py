"""
Schema Editor

Column operations on a quote. Every function takes a Quote and returns a new
one; the argument is left untouched. Refused edits raise a SchemaEditError
subclass so callers can report them to the user.

Items always carry a value for every non-reserved column: adding a column
backfills the type default, deleting one strips its key.
"""

import logging
import re
from dataclasses import replace
from typing import Callable, Iterable, Optional

from apps.quoting.enums import CalculationType, DateFormat, MoveDirection, ValueType
from apps.quoting.exceptions import (
    ColumnNotFoundError,
    InvalidColumnError,
    ReservedColumnError,
)
from apps.quoting.formula import identifiers
from apps.quoting.quote import (
    DESCRIPTION_COLUMN_ID,
    UNIT_PRICE_COLUMN_ID,
    Calculation,
    Column,
    Quote,
    default_value_for,
    new_column_id,
)

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 100

_COLUMN_ID_TOKEN_RE = re.compile(r"(?<![\w.@])[A-Za-z_]\w*")


def _coerce_value_type(value_type) -> ValueType:
    try:
        return ValueType(value_type)
    except ValueError as exc:
        raise InvalidColumnError(f"Unknown column type {value_type!r}") from exc


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidColumnError("Column name cannot be blank")
    return name


def _clean_row_formula(formula: Optional[str]) -> Optional[str]:
    if formula is None or not formula.strip():
        return None
    return formula.strip()


def _check_row_formula(column: Column) -> None:
    if column.row_formula and column.id in identifiers(column.row_formula):
        raise InvalidColumnError(
            f"Row formula of column {column.name!r} cannot reference the column itself"
        )


def _require_column(quote: Quote, column_id: str) -> Column:
    column = quote.column(column_id)
    if column is None:
        raise ColumnNotFoundError(column_id)
    return column


def _typed(column: Column) -> Column:
    """Drop the settings that do not apply to the column's type."""
    if not column.is_number:
        column = replace(column, calculation=None, row_formula=None)
    if column.value_type != ValueType.DATE:
        column = replace(column, date_format=None)
    elif column.date_format is None:
        column = replace(column, date_format=DateFormat.SINGLE.value)
    return column


def add_column(
    quote: Quote,
    name: str,
    value_type,
    calculation: Optional[Calculation] = None,
    row_formula: Optional[str] = None,
    date_format: Optional[str] = None,
    id_factory: Callable[[], str] = new_column_id,
) -> Quote:
    """
    Append a column and backfill every item with the type's default value.

    Args:
        quote: Quote to extend
        name: Display name, must not be blank
        value_type: ValueType or its value
        calculation: Summary calculation (number columns only)
        row_formula: Per-row formula over other number column ids
        date_format: "single" or "range" (date columns only)
        id_factory: Source of fresh column ids

    Returns:
        New Quote with the column appended
    """
    name = _clean_name(name)
    value_type = _coerce_value_type(value_type)

    existing_ids = {column.id for column in quote.columns}
    for _ in range(MAX_ID_ATTEMPTS):
        column_id = id_factory()
        if column_id not in existing_ids:
            break
    else:
        raise InvalidColumnError("Could not generate a unique column id")

    column = _typed(
        Column(
            id=column_id,
            name=name,
            value_type=value_type,
            calculation=calculation,
            row_formula=_clean_row_formula(row_formula),
            date_format=date_format,
        )
    )
    _check_row_formula(column)

    updated = quote.copy()
    updated.columns.append(column)
    default = default_value_for(column.value_type)
    for item in updated.iter_items():
        item.custom_fields[column.id] = default

    logger.debug("Added column %s (%s) to quote %s", column.id, column.name, quote.id)
    return updated


def edit_column(quote: Quote, column: Column) -> Quote:
    """
    Replace the column with the same id.

    The unit price column only takes a new row formula and the description
    column only a new name; reserved columns keep their type.
    """
    existing = _require_column(quote, column.id)

    if existing.id == UNIT_PRICE_COLUMN_ID:
        updated_column = replace(
            existing, row_formula=_clean_row_formula(column.row_formula)
        )
    elif existing.id == DESCRIPTION_COLUMN_ID:
        updated_column = replace(existing, name=_clean_name(column.name))
    else:
        updated_column = _typed(
            replace(
                column,
                name=_clean_name(column.name),
                value_type=_coerce_value_type(column.value_type),
                row_formula=_clean_row_formula(column.row_formula),
            )
        )
    _check_row_formula(updated_column)

    updated = quote.copy()
    updated.columns[updated.column_index(column.id)] = updated_column
    return updated


def update_column_calculation(
    quote: Quote, column_id: str, calculation: Optional[Calculation]
) -> Quote:
    existing = _require_column(quote, column_id)
    if (
        calculation is not None
        and calculation.type != CalculationType.NONE
        and not existing.is_number
    ):
        raise InvalidColumnError(
            f"Only number columns can have a calculation, {existing.name!r} is {existing.value_type.label.lower()}"
        )

    updated = quote.copy()
    updated.columns[updated.column_index(column_id)] = replace(
        existing, calculation=calculation
    )
    return updated


def delete_column(quote: Quote, column_id: str) -> Quote:
    existing = _require_column(quote, column_id)
    if existing.is_reserved:
        raise ReservedColumnError(column_id, "delete")

    updated = quote.copy()
    updated.columns = [column for column in updated.columns if column.id != column_id]
    for item in updated.iter_items():
        item.custom_fields.pop(column_id, None)

    logger.debug("Deleted column %s from quote %s", column_id, quote.id)
    return updated


def move_column(quote: Quote, index: int, direction) -> Quote:
    """Swap the column at ``index`` with its left or right neighbour."""
    direction = MoveDirection(direction)
    target = index - 1 if direction == MoveDirection.LEFT else index + 1

    updated = quote.copy()
    if not (0 <= index < len(updated.columns)) or not (0 <= target < len(updated.columns)):
        return updated

    columns = updated.columns
    columns[index], columns[target] = columns[target], columns[index]
    return updated


def _formula_columns(columns: Iterable[Column], editing_id: Optional[str]):
    return [
        column
        for column in columns
        if column.is_number and column.id != editing_id
    ]


def to_display_formula(
    formula: Optional[str], columns: Iterable[Column], editing_id: Optional[str] = None
) -> str:
    """
    Render a stored row formula for editing: column ids become ``@shortname``,
    so ``quantity * unitPrice`` reads ``@quantity * @unitprice``.
    """
    if not formula:
        return ""
    short_names = {
        column.id: f"@{column.short_name}"
        for column in _formula_columns(columns, editing_id)
    }

    def _replace(match: re.Match) -> str:
        return short_names.get(match.group(0), match.group(0))

    return _COLUMN_ID_TOKEN_RE.sub(_replace, formula)


def from_display_formula(
    formula: Optional[str], columns: Iterable[Column], editing_id: Optional[str] = None
) -> Optional[str]:
    """
    Inverse of ``to_display_formula``: ``@shortname`` references become column ids.

    Raises:
        InvalidColumnError: a reference matches no other number column
    """
    if formula is None or not formula.strip():
        return None

    ids_by_short_name = {}
    for column in _formula_columns(columns, editing_id):
        ids_by_short_name.setdefault(column.short_name, column.id)
    if ids_by_short_name:
        # Longest names first so "@unitprice2" is not read as "@unitprice" + "2"
        alternatives = sorted(ids_by_short_name, key=len, reverse=True)
        pattern = re.compile("@(" + "|".join(re.escape(name) for name in alternatives) + ")")
        formula = pattern.sub(lambda match: ids_by_short_name[match.group(1)], formula)

    unknown = re.findall(r"@\S+", formula)
    if unknown:
        raise InvalidColumnError(
            f"Unknown column reference(s) in row formula: {', '.join(unknown)}"
        )
    return formula.strip()


def normalize_items(quote: Quote) -> Quote:
    """
    Make every item match the schema: missing values get the type default and
    values of columns no longer in the schema are dropped.
    """
    updated = quote.copy()
    custom_columns = [column for column in updated.columns if not column.is_reserved]
    known_ids = {column.id for column in custom_columns}

    for item in updated.iter_items():
        for key in [key for key in item.custom_fields if key not in known_ids]:
            del item.custom_fields[key]
        for column in custom_columns:
            item.custom_fields.setdefault(column.id, default_value_for(column.value_type))
    return updated
