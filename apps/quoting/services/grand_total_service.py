"""
Grand Total Service

Resolves the quote's Grand Total formula. The formula is free text with
``{placeholders}`` for named values:

- legacy aliases: {Price} / {P} / {priceSum} for the sum of the price column,
  {Collab} / {C} / {collabSum} for the collaborators' total
- one group per summary row: the column name without whitespace, the same
  name suffixed with ``Calc``, a positional letter ({A}, {B}, ...) and the
  column id

Adjacent placeholders (``{A}{B}`` or ``{A} {B}``) are added together. A formula
that cannot be resolved falls back to the price sum and reports why.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from apps.quoting.exceptions import FormulaError
from apps.quoting.formula import evaluate, format_decimal
from apps.quoting.helpers import ZERO, decimal_to_float
from apps.quoting.quote import UNIT_PRICE_COLUMN_ID, Column, Quote
from apps.quoting.services.column_aggregator import (
    CalculationResult,
    calculation_results as build_calculation_results,
)
from apps.quoting.services.row_evaluator import evaluate_cell

logger = logging.getLogger(__name__)

PRICE_ALIASES = ("Price", "P", "priceSum")
COLLAB_ALIASES = ("Collab", "C", "collabSum")

_PLACEHOLDER_RE = re.compile(r"\{([^{}]*)\}")
_ADJACENT_PLACEHOLDERS_RE = re.compile(r"\}\s*\{")
_WHITESPACE_RE = re.compile(r"\s+")


def price_sum(quote: Quote) -> Decimal:
    """Sum of the effective unit price over every item (row formula honoured)"""
    column = quote.column(UNIT_PRICE_COLUMN_ID)
    if column is None:
        return sum((item.unit_price for item in quote.iter_items()), ZERO)
    return sum(
        (evaluate_cell(item, column, quote.columns) for item in quote.iter_items()),
        ZERO,
    )


def collab_sum(collaborator_quotes: Iterable[Quote]) -> Decimal:
    """Raw unit price total of every collaborator quote"""
    return sum(
        (item.unit_price for quote in collaborator_quotes for item in quote.iter_items()),
        ZERO,
    )


def position_letter(index: int) -> str:
    """0 -> A, 25 -> Z, 26 -> AA, spreadsheet style"""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


@dataclass
class VariableTable:
    """
    Names a Grand Total formula may reference.

    ``legacy`` is substituted first, ``columns`` second, so a column whose
    variable name equals an alias never replaces the alias.
    """

    legacy: Dict[str, Decimal] = field(default_factory=dict)
    columns: Dict[str, Decimal] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def catalogue(self) -> Dict[str, Decimal]:
        """Every resolvable name with the value it resolves to"""
        resolved = dict(self.columns)
        resolved.update(self.legacy)
        return resolved

    def to_dict(self) -> Dict[str, Any]:
        return {name: decimal_to_float(value) for name, value in self.catalogue().items()}


def build_variable_table(
    price_total: Decimal,
    collab_total: Decimal,
    results: Sequence[CalculationResult],
) -> VariableTable:
    """
    Build the placeholder table once per resolution.

    Args:
        price_total: Value bound to the price aliases
        collab_total: Value bound to the collaborator aliases
        results: Summary rows, in schema order; non-numeric results bind to 0

    Returns:
        VariableTable, with a warning for every name two rows both claim
        (the later row wins)
    """
    table = VariableTable()
    for alias in PRICE_ALIASES:
        table.legacy[alias] = price_total
    for alias in COLLAB_ALIASES:
        table.legacy[alias] = collab_total

    owners: Dict[str, str] = {}
    for index, result in enumerate(results):
        value = result.result if result.is_numeric else ZERO
        name = _WHITESPACE_RE.sub("", result.name)
        names = [position_letter(index), result.id]
        if name:
            names[:0] = [name, f"{name}Calc"]

        for variable in dict.fromkeys(names):
            if variable in table.legacy:
                table.warnings.append(
                    f"Variable {{{variable}}} of column {result.id!r} is shadowed by a built-in alias"
                )
            previous_owner = owners.get(variable)
            if previous_owner is not None and previous_owner != result.id:
                table.warnings.append(
                    f"Variable {{{variable}}} is defined by columns {previous_owner!r} "
                    f"and {result.id!r}; using {result.id!r}"
                )
            owners[variable] = result.id
            table.columns[variable] = value

    for warning in table.warnings:
        logger.warning(warning)
    return table


def normalize_formula(formula: str) -> str:
    """Join adjacent placeholders with ``+``"""
    return _ADJACENT_PLACEHOLDERS_RE.sub("}+{", formula)


def _substitute(expression: str, values: Dict[str, Decimal]) -> str:
    def _replace(match: re.Match) -> str:
        name = match.group(1).strip()
        if name in values:
            return format_decimal(values[name])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, expression)


@dataclass
class GrandTotalResult:
    value: Decimal
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    variables: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None


def resolve_grand_total(
    formula: Optional[str],
    quote: Quote,
    columns: Optional[Sequence[Column]] = None,
    collaborator_quotes: Iterable[Quote] = (),
    calculation_results: Optional[Sequence[CalculationResult]] = None,
) -> GrandTotalResult:
    """
    Evaluate a Grand Total formula against a quote.

    Args:
        formula: Formula text; blank means "the price sum"
        quote: Quote whose items are totalled
        columns: Schema to use instead of ``quote.columns``
        collaborator_quotes: Quotes whose prices feed the collaborator aliases
        calculation_results: Precomputed summary rows, computed when omitted

    Returns:
        GrandTotalResult; ``value`` is the price sum whenever ``error`` is set
    """
    if columns is not None:
        quote = replace(quote, columns=list(columns))
    if calculation_results is None:
        calculation_results = build_calculation_results(quote)

    price_total = price_sum(quote)
    table = build_variable_table(
        price_total, collab_sum(collaborator_quotes), calculation_results
    )
    warnings = list(table.warnings)
    variables = table.catalogue()

    if formula is None or not formula.strip():
        return GrandTotalResult(value=price_total, warnings=warnings, variables=variables)

    expression = normalize_formula(formula)
    expression = _substitute(expression, table.legacy)
    expression = _substitute(expression, table.columns)

    unresolved = list(dict.fromkeys(_PLACEHOLDER_RE.findall(expression)))
    if unresolved:
        names = ", ".join(f"{{{name.strip()}}}" for name in unresolved)
        error = f"Unknown variable(s) in grand total formula: {names}"
        logger.info("Grand total %r falls back to price sum: %s", formula, error)
        return GrandTotalResult(
            value=price_total, error=error, warnings=warnings, variables=variables
        )

    try:
        value = evaluate(expression)
    except FormulaError as exc:
        error = f"Invalid grand total formula: {exc}"
        logger.info("Grand total %r falls back to price sum: %s", formula, error)
        return GrandTotalResult(
            value=price_total, error=error, warnings=warnings, variables=variables
        )

    return GrandTotalResult(value=value, warnings=warnings, variables=variables)
