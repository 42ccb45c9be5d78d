"""
Column Aggregator

Reduces the effective values of a number column over a quote (or a single
section) according to the column's calculation: sum, average, minimum,
maximum or a custom formula over other columns' sums.

Results are Decimals, or one of two display markers:
- EMPTY_RESULT when there is nothing to show (no values for min/max, blank
  custom formula, column without a calculation)
- ERROR_RESULT when a custom formula cannot be evaluated
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Sequence, Union

from apps.quoting.enums import CalculationType
from apps.quoting.exceptions import FormulaError
from apps.quoting.formula import evaluate, format_decimal
from apps.quoting.helpers import ZERO, decimal_to_float
from apps.quoting.quote import COLUMN_ID_PREFIX, Column, Item, Quote, Section
from apps.quoting.services.row_evaluator import evaluate_cell

logger = logging.getLogger(__name__)

EMPTY_RESULT = "-"
ERROR_RESULT = "Error"

AggregateResult = Union[Decimal, str]

# Column references inside a custom aggregate formula
COLUMN_TOKEN_RE = re.compile(rf"\b{COLUMN_ID_PREFIX}\w+\b")


@dataclass
class CalculationResult:
    """One row of the summary panel"""

    id: str
    name: str
    calculation_label: str
    result: AggregateResult
    type: CalculationType

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.result, Decimal)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "calculation": self.calculation_label,
            "type": self.type.value,
            "result": decimal_to_float(self.result),
        }


def _values_over(
    column: Column, items: Iterable[Item], columns: Sequence[Column]
) -> List[Decimal]:
    return [evaluate_cell(item, column, columns) for item in items]


def column_values(column: Column, quote: Quote) -> List[Decimal]:
    """Effective values of ``column`` for every item, section-then-item order"""
    return _values_over(column, quote.iter_items(), quote.columns)


def _evaluate_custom(
    column: Column, items: Sequence[Item], columns: Sequence[Column]
) -> AggregateResult:
    formula = column.calculation.formula if column.calculation else None
    if not formula or not formula.strip():
        return EMPTY_RESULT

    by_id = {candidate.id: candidate for candidate in columns}
    sums: Dict[str, Decimal] = {}

    def _replace(match: re.Match) -> str:
        column_id = match.group(0)
        referenced = by_id.get(column_id)
        if referenced is None:
            return column_id
        if column_id not in sums:
            sums[column_id] = sum(_values_over(referenced, items, columns), ZERO)
        return format_decimal(sums[column_id])

    expression = COLUMN_TOKEN_RE.sub(_replace, formula)
    try:
        return evaluate(expression)
    except FormulaError as exc:
        logger.warning(
            "Custom formula %r of column %s could not be evaluated: %s",
            formula,
            column.id,
            exc,
        )
        return ERROR_RESULT


def _aggregate_items(
    column: Column, items: Sequence[Item], columns: Sequence[Column]
) -> AggregateResult:
    if not column.has_calculation:
        return EMPTY_RESULT

    calculation_type = column.calculation_type
    if calculation_type == CalculationType.CUSTOM:
        return _evaluate_custom(column, items, columns)

    values = _values_over(column, items, columns)
    if calculation_type == CalculationType.SUM:
        return sum(values, ZERO)
    if calculation_type == CalculationType.AVERAGE:
        if not values:
            return ZERO
        return sum(values, ZERO) / len(values)
    if calculation_type == CalculationType.MIN:
        return min(values) if values else EMPTY_RESULT
    if calculation_type == CalculationType.MAX:
        return max(values) if values else EMPTY_RESULT
    return EMPTY_RESULT


def aggregate(column: Column, quote: Quote) -> AggregateResult:
    """Reduce ``column`` over every item of ``quote``."""
    return _aggregate_items(column, list(quote.iter_items()), quote.columns)


def _results_for(items: Sequence[Item], columns: Sequence[Column]) -> List[CalculationResult]:
    results = []
    for column in columns:
        if not column.has_calculation:
            continue
        results.append(
            CalculationResult(
                id=column.id,
                name=column.name,
                calculation_label=column.calculation_type.label,
                result=_aggregate_items(column, items, columns),
                type=column.calculation_type,
            )
        )
    return results


def calculation_results(quote: Quote) -> List[CalculationResult]:
    """
    Summary rows for every number column that has a calculation.

    Args:
        quote: The quote to summarise

    Returns:
        CalculationResults in schema order
    """
    return _results_for(list(quote.iter_items()), quote.columns)


def section_results(section: Section, columns: Sequence[Column]) -> List[CalculationResult]:
    """Same summary rows restricted to the items of one section"""
    return _results_for(list(section.items), list(columns))


def section_total(section: Section) -> Decimal:
    return sum((item.unit_price for item in section.items), ZERO)
