"""
Row Evaluator

Computes the effective value of a number cell. A column with a row formula
derives its value from the *stored* values of the other number columns of the
same item; formulas never see each other's results, so chains cannot recurse.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable

from apps.quoting.exceptions import FormulaError
from apps.quoting.formula import evaluate, substitute_identifiers
from apps.quoting.helpers import ZERO, to_decimal
from apps.quoting.quote import (
    DESCRIPTION_COLUMN_ID,
    UNIT_PRICE_COLUMN_ID,
    Column,
    Item,
)

logger = logging.getLogger(__name__)


def stored_value(item: Item, column: Column) -> Any:
    if column.id == UNIT_PRICE_COLUMN_ID:
        return item.unit_price
    if column.id == DESCRIPTION_COLUMN_ID:
        return item.description
    return item.custom_fields.get(column.id)


def evaluate_cell(item: Item, column: Column, all_columns: Iterable[Column]) -> Decimal:
    """
    Effective numeric value of ``column`` for ``item``.

    A broken row formula yields 0 rather than an error so that one bad cell
    never blocks the rest of the table.
    """
    if not column.has_row_formula:
        return to_decimal(stored_value(item, column))

    variables = {
        other.id: to_decimal(stored_value(item, other))
        for other in all_columns
        if other.is_number and other.id != column.id
    }
    expression = substitute_identifiers(column.row_formula, variables)
    try:
        return evaluate(expression)
    except FormulaError as exc:
        logger.debug(
            "Row formula %r of column %s failed for item %s: %s",
            column.row_formula,
            column.id,
            item.id,
            exc,
        )
        return ZERO


def row_values(item: Item, columns: Iterable[Column]) -> Dict[str, Decimal]:
    """Effective value of every number column for one item"""
    columns = list(columns)
    return {
        column.id: evaluate_cell(item, column, columns)
        for column in columns
        if column.is_number
    }
