"""
Quote Engine Service

Single entry point that recomputes everything derived from a quote: the
effective value of every number cell, per-section totals and summary rows,
the quote-wide summary rows and the Grand Total / Net Total pair.

Call ``recompute`` after every change to the quote; it is pure and never
mutates its input.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from apps.quoting.enums import CalculationType
from apps.quoting.helpers import ZERO, decimal_to_float
from apps.quoting.quote import Quote
from apps.quoting.services.column_aggregator import (
    CalculationResult,
    calculation_results,
    section_results,
    section_total,
)
from apps.quoting.services.grand_total_service import (
    collab_sum,
    price_sum,
    resolve_grand_total,
)
from apps.quoting.services.row_evaluator import row_values

logger = logging.getLogger(__name__)


@dataclass
class QuoteSummary:
    # section id -> item id -> column id -> effective value
    cell_values: Dict[str, Dict[str, Dict[str, Decimal]]] = field(default_factory=dict)
    section_totals: Dict[str, Decimal] = field(default_factory=dict)
    section_results: Dict[str, List[CalculationResult]] = field(default_factory=dict)
    calculation_results: List[CalculationResult] = field(default_factory=list)
    price_sum: Decimal = ZERO
    collab_sum: Decimal = ZERO
    grand_total: Decimal = ZERO
    net_total: Decimal = ZERO
    grand_total_error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    variables: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def sum_totals(self) -> List[CalculationResult]:
        """Summary rows of ``sum`` columns, shown as the totals block"""
        return [
            result
            for result in self.calculation_results
            if result.type == CalculationType.SUM
        ]

    @property
    def other_calculations(self) -> List[CalculationResult]:
        return [
            result
            for result in self.calculation_results
            if result.type != CalculationType.SUM
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cellValues": {
                section_id: {
                    item_id: {
                        column_id: decimal_to_float(value)
                        for column_id, value in values.items()
                    }
                    for item_id, values in items.items()
                }
                for section_id, items in self.cell_values.items()
            },
            "sectionTotals": {
                section_id: decimal_to_float(total)
                for section_id, total in self.section_totals.items()
            },
            "sectionResults": {
                section_id: [result.to_dict() for result in results]
                for section_id, results in self.section_results.items()
            },
            "calculationResults": [
                result.to_dict() for result in self.calculation_results
            ],
            "priceSum": decimal_to_float(self.price_sum),
            "collabSum": decimal_to_float(self.collab_sum),
            "grandTotal": decimal_to_float(self.grand_total),
            "netTotal": decimal_to_float(self.net_total),
            "grandTotalError": self.grand_total_error,
            "warnings": list(self.warnings),
            "variables": {
                name: decimal_to_float(value) for name, value in self.variables.items()
            },
        }


def recompute(
    quote: Quote,
    grand_total_formula: Optional[str] = None,
    collaborator_quotes: Iterable[Quote] = (),
) -> QuoteSummary:
    """
    Recompute every derived value of ``quote``.

    Args:
        quote: The quote to evaluate
        grand_total_formula: Formula to use instead of the quote's own one
        collaborator_quotes: Quotes feeding {Collab} and the Net Total

    Returns:
        QuoteSummary
    """
    collaborator_quotes = list(collaborator_quotes)
    formula = (
        quote.grand_total_formula if grand_total_formula is None else grand_total_formula
    )

    summary = QuoteSummary()
    for section in quote.sections:
        summary.section_totals[section.id] = section_total(section)
        summary.section_results[section.id] = section_results(section, quote.columns)
        summary.cell_values[section.id] = {
            item.id: row_values(item, quote.columns) for item in section.items
        }

    summary.calculation_results = calculation_results(quote)
    summary.price_sum = price_sum(quote)
    summary.collab_sum = collab_sum(collaborator_quotes)

    grand_total = resolve_grand_total(
        formula,
        quote,
        collaborator_quotes=collaborator_quotes,
        calculation_results=summary.calculation_results,
    )
    summary.grand_total = grand_total.value
    summary.grand_total_error = grand_total.error
    summary.warnings = list(grand_total.warnings)
    summary.net_total = summary.grand_total - summary.collab_sum
    summary.variables = grand_total.variables

    logger.debug(
        "Recomputed quote %s: grand total %s, net total %s",
        quote.id or "<unsaved>",
        summary.grand_total,
        summary.net_total,
    )
    return summary
