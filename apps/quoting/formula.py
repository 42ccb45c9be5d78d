"""
Arithmetic Formula Evaluator

A small recursive-descent evaluator for the quote formulas. It only knows
decimal literals, ``+ - * /``, unary signs and parentheses; column ids and
``{placeholders}`` must already have been substituted by the caller. Anything
else in the text is rejected with a FormulaError.

Grammar:
    expr    := term (('+' | '-') term)*
    term    := unary (('*' | '/') unary)*
    unary   := ('+' | '-') unary | primary
    primary := NUMBER | '(' expr ')'
"""

import re
from decimal import (
    Context,
    Decimal,
    DecimalException,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)
from typing import List, Mapping, NamedTuple

from django.conf import settings

from apps.quoting.exceptions import FormulaError
from apps.quoting.helpers import in_cell_range

DEFAULT_MAX_FORMULA_LENGTH = 2000

_TOKEN_RE = re.compile(
    r"""
    (?P<number>(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<op>[-+*/()])
    |(?P<space>\s+)
    |(?P<ident>[A-Za-z_]\w*)
    |(?P<placeholder>\{[^{}]*\})
    |(?P<other>.)
    """,
    re.VERBOSE,
)

# Identifier tokens that are not glued to a number or another identifier
_IDENTIFIER_RE = re.compile(r"(?<![\w.])[A-Za-z_]\w*")


class Token(NamedTuple):
    kind: str
    text: str
    position: int


def max_formula_length() -> int:
    engine_settings = getattr(settings, "QUOTE_ENGINE", {}) or {}
    return int(engine_settings.get("MAX_FORMULA_LENGTH", DEFAULT_MAX_FORMULA_LENGTH))


def format_decimal(value: Decimal) -> str:
    """Plain (never exponent) decimal text, parenthesised when negative"""
    text = format(value, "f")
    if value < 0:
        return f"({text})"
    return text


def substitute_identifiers(expression: str, values: Mapping[str, Decimal]) -> str:
    """
    Replace whole-word identifiers found in ``values`` by their numeric text.

    Identifiers that are not in ``values`` are left untouched; ``evaluate``
    reports them as unknown.
    """

    def _replace(match: re.Match) -> str:
        name = match.group(0)
        if name in values:
            return format_decimal(values[name])
        return name

    return _IDENTIFIER_RE.sub(_replace, expression)


def identifiers(expression: str) -> List[str]:
    """Identifier names referenced by ``expression``, first occurrence order"""
    return list(dict.fromkeys(_IDENTIFIER_RE.findall(expression or "")))


def tokenize(expression: str) -> List[Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(expression):
        kind = match.lastgroup
        text = match.group(0)
        if kind == "space":
            continue
        if kind == "ident":
            raise FormulaError(f"Unknown variable '{text}'", expression)
        if kind == "placeholder":
            raise FormulaError(f"Unknown variable {text}", expression)
        if kind == "other":
            raise FormulaError(
                f"Unexpected character '{text}' at position {match.start()}",
                expression,
            )
        tokens.append(Token(kind, text, match.start()))
    return tokens


class _Parser:
    def __init__(self, expression: str, tokens: List[Token]):
        self.expression = expression
        self.tokens = tokens
        self.index = 0

    def _peek(self):
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str) -> FormulaError:
        return FormulaError(message, self.expression)

    def parse(self) -> Decimal:
        value = self._expr()
        token = self._peek()
        if token is not None:
            raise self._error(
                f"Unexpected '{token.text}' at position {token.position}"
            )
        return value

    def _expr(self) -> Decimal:
        value = self._term()
        while True:
            token = self._peek()
            if token is None or token.text not in ("+", "-"):
                return value
            self._advance()
            right = self._term()
            value = value + right if token.text == "+" else value - right

    def _term(self) -> Decimal:
        value = self._unary()
        while True:
            token = self._peek()
            if token is None or token.text not in ("*", "/"):
                return value
            self._advance()
            right = self._unary()
            if token.text == "*":
                value = value * right
            else:
                if right == 0:
                    raise self._error("Division by zero")
                value = value / right

    def _unary(self) -> Decimal:
        token = self._peek()
        if token is not None and token.text in ("+", "-"):
            self._advance()
            operand = self._unary()
            return operand if token.text == "+" else -operand
        return self._primary()

    def _primary(self) -> Decimal:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of formula")

        if token.kind == "number":
            self._advance()
            return Decimal(token.text)

        if token.text == "(":
            self._advance()
            value = self._expr()
            closing = self._peek()
            if closing is None or closing.text != ")":
                raise self._error("Missing closing parenthesis")
            self._advance()
            return value

        raise self._error(f"Unexpected '{token.text}' at position {token.position}")


def evaluate(expression: str) -> Decimal:
    """
    Evaluate a fully substituted arithmetic expression.

    Raises:
        FormulaError: empty or over-long input, unknown tokens, syntax errors,
            division by zero, or a result that is not a finite number.
    """
    if expression is None or not expression.strip():
        raise FormulaError("Formula is empty", expression)

    limit = max_formula_length()
    if len(expression) > limit:
        raise FormulaError(
            f"Formula is longer than {limit} characters", expression[:limit]
        )

    tokens = tokenize(expression)
    context = Context(prec=28, traps=[InvalidOperation, DivisionByZero, Overflow])
    try:
        with localcontext(context):
            result = _Parser(expression, tokens).parse()
            # Apply the context precision to a bare literal too
            result = +result
    except DecimalException as exc:
        raise FormulaError(
            f"Arithmetic error: {exc.__class__.__name__}", expression
        ) from exc

    if not in_cell_range(result):
        raise FormulaError("Formula did not produce a finite number", expression)
    return result
