"""Tariffs of type FORMULA.

Each table row carries a threshold and an arithmetic formula in which
``$wert$`` stands for the taxable amount, e.g.
``(0.0787 * $wert$ - 0.0000001 * $wert$ * $wert$) - 95`` or
``$wert$ * (0.1 * log $wert$ - 0.9)``. Formula strings come from external
data files, so they are evaluated by a small whitelisted parser and never
handed to ``eval``.
"""

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .models import CHF, TaxTarif, TariffRow, chf
from .money import round_five_centimes

logger = logging.getLogger(__name__)

PLACEHOLDER = "$wert$"
MAX_NESTING = 64

_LOG_MARKER = re.compile(r"log\s*\$wert\$")
_SAFE_EXPR = re.compile(r"^(?:[\d.eE\s+\-*/(),]|ln\()+$")
_TOKEN = re.compile(
    r"\s*(?:(?P<num>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|(?P<op>\*\*|[-+*/(),])|(?P<fn>ln))"
)


class FormulaError(ValueError):
    pass


def _tokenize(expr: str) -> List[str]:
    tokens = []
    pos = 0
    expr = expr.rstrip()
    while pos < len(expr):
        m = _TOKEN.match(expr, pos)
        if not m or m.end() == pos:
            raise FormulaError(f"unexpected input at {pos}: {expr[pos:pos + 10]!r}")
        tokens.append(m.group("num") or m.group("op") or m.group("fn"))
        pos = m.end()
    return tokens


class _Parser:
    """
    Recursive descent over:
      expr   := term (('+' | '-') term)*
      term   := unary (('*' | '/') unary)*
      unary  := ('+' | '-') unary | power
      power  := atom ('**' unary)?
      atom   := number | '(' expr ')' | 'ln' '(' expr ')'
    """

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.i = 0
        self.depth = 0

    def _peek(self) -> Optional[str]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _take(self, expected: Optional[str] = None) -> str:
        tok = self._peek()
        if tok is None or (expected is not None and tok != expected):
            raise FormulaError(f"expected {expected or 'token'}, got {tok!r}")
        self.i += 1
        return tok

    def parse(self) -> float:
        value = self._expr()
        if self._peek() is not None:
            raise FormulaError(f"trailing token {self._peek()!r}")
        return value

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._take() == "+":
                value = value + self._term()
            else:
                value = value - self._term()
        return value

    def _term(self) -> float:
        value = self._unary()
        while self._peek() in ("*", "/"):
            if self._take() == "*":
                value = value * self._unary()
            else:
                value = value / self._unary()
        return value

    def _unary(self) -> float:
        # every recursive path (signs, powers, parentheses, ln) passes through here
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise FormulaError(f"nesting deeper than {MAX_NESTING}")
        try:
            if self._peek() == "-":
                self._take()
                return -self._unary()
            if self._peek() == "+":
                self._take()
                return self._unary()
            return self._power()
        finally:
            self.depth -= 1

    def _power(self) -> float:
        base = self._atom()
        if self._peek() == "**":
            self._take()
            return base ** self._unary()
        return base

    def _atom(self) -> float:
        tok = self._take()
        if tok == "(":
            value = self._expr()
            self._take(")")
            return value
        if tok == "ln":
            self._take("(")
            arg = self._expr()
            # ln takes exactly one argument; a ',' here is a parse error
            self._take(")")
            return math.log(arg)
        if tok[0].isdigit() or tok[0] == ".":
            return float(tok)
        raise FormulaError(f"unexpected token {tok!r}")


def evaluate_expression(expr: str) -> float:
    """Evaluate a whitelisted arithmetic expression. Raises FormulaError on bad input."""
    if not _SAFE_EXPR.match(expr):
        raise FormulaError(f"disallowed characters in {expr!r}")
    try:
        value = _Parser(_tokenize(expr)).parse()
    except (ArithmeticError, ValueError, TypeError, RecursionError) as e:
        raise FormulaError(str(e)) from e
    if isinstance(value, complex) or not math.isfinite(value):
        raise FormulaError(f"non-finite result for {expr!r}")
    return value


def select_row(amount: CHF, table: List[TariffRow]) -> TariffRow:
    """Last row whose threshold is <= amount, else the first row."""
    row = table[0]
    for candidate in table:
        if chf(candidate.amount) <= amount:
            row = candidate
    return row


def build_expression(formula: str, amount: CHF) -> str:
    expr = _LOG_MARKER.sub(f"ln({PLACEHOLDER})", formula)
    return expr.replace(PLACEHOLDER, str(amount))


def evaluate_formula_tarif(amount: CHF, tarif: TaxTarif) -> CHF:
    if amount < 0 or not tarif.table:
        return Decimal(0)

    row = select_row(amount, tarif.table)
    formula = (row.formula or "").strip()
    if not formula:
        return Decimal(0)

    expr = build_expression(formula, amount)
    try:
        raw = evaluate_expression(expr)
        # results beyond the Decimal context cannot be quantized to centimes
        return round_five_centimes(chf(raw))
    except (FormulaError, InvalidOperation) as e:
        logger.warning("Formula of tarif %s at %s rejected: %s", tarif.name, row.amount, e)
        return Decimal(0)
