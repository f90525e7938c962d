"""Formula evaluation: tag substitution, validation and tree walking.

The pipeline mirrors what the editor shows while a user types:

1. blank formula -> no value
2. replace every tag span with the tag's value (right to left)
3. check parentheses
4. drop one dangling trailing operator
5. blank remainder -> no value
6. reject anything but digits, ``+ - * / ( ) ^``, ``.`` and spaces
7. parse with the Lark grammar and walk the tree

Nothing here executes user text as code.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Union

from lark import Token
from lark.exceptions import VisitError
from lark.visitors import Transformer_NonRecursive
from pydantic import BaseModel, ConfigDict

from tagcalc.formulas.errors import (
    DivisionByZeroError,
    FormulaError,
    InvalidCharactersError,
    MalformedExpressionError,
    NonFiniteResultError,
    UnbalancedParenthesesError,
)
from tagcalc.formulas.parser import parse_expression
from tagcalc.models import Tag

Number = Union[int, float]

TRAILING_OPERATORS = frozenset("+-*/^")
ALLOWED_CHARACTERS = frozenset("0123456789+-*/()^. ")

# Largest magnitude at which every integer is exactly representable as a float.
_MAX_EXACT_INT = 2**53


class Evaluation(BaseModel):
    """Displayable outcome of evaluating a formula.

    Exactly one of three shapes:
    - ``value`` set: the formula computed to a number
    - ``error_code`` set: the formula is invalid (``message`` explains why)
    - neither set: there is nothing to display yet
    """

    model_config = ConfigDict(frozen=True)

    value: Number | None = None
    error_code: str | None = None
    message: str | None = None
    expression: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    @property
    def has_value(self) -> bool:
        return self.value is not None

    def display(self) -> str:
        if self.error_code is not None:
            return f"Error: {self.message}"
        if self.value is None:
            return "(no value)"
        return format_value(self.value)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def evaluate(text: str, tags: Iterable[Tag] | Mapping[int, Tag] = ()) -> Number | None:
    """Evaluate a formula after substituting its tags.

    Args:
        text: The formula text, tag names included.
        tags: Tags anchored in *text* (any order), or a mapping of id to tag.

    Returns:
        The numeric result, or ``None`` when there is nothing to evaluate.

    Raises:
        UnbalancedParenthesesError: If parentheses do not pair up.
        InvalidCharactersError: If non-arithmetic characters remain.
        MalformedExpressionError: If the arithmetic is syntactically invalid.
        DivisionByZeroError: If a divisor evaluates to zero.
        NonFiniteResultError: If the result is infinite, NaN or non-real.
    """
    expression = prepare_expression(text, tags)
    if expression is None:
        return None
    return evaluate_expression(expression)


def calculate(text: str, tags: Iterable[Tag] | Mapping[int, Tag] = ()) -> Evaluation:
    """Evaluate a formula and wrap the outcome for display.  Never raises
    a :class:`FormulaError`.
    """
    expression: str | None = None
    try:
        expression = prepare_expression(text, tags)
        if expression is None:
            return Evaluation()
        return Evaluation(value=evaluate_expression(expression), expression=expression)
    except FormulaError as exc:
        return Evaluation(error_code=exc.code, message=str(exc), expression=expression)


def prepare_expression(text: str, tags: Iterable[Tag] | Mapping[int, Tag] = ()) -> str | None:
    """Run steps 1-6: substitute, check and clean the formula.

    Returns:
        The plain arithmetic string, or ``None`` for "no value".
    """
    if not text.strip():
        return None

    expression = substitute_tags(text, tags)
    check_parentheses(expression)
    expression = strip_trailing_operator(expression)
    if not expression.strip():
        return None

    invalid = _invalid_characters(expression)
    if invalid:
        raise InvalidCharactersError(invalid)
    return expression


def evaluate_expression(expression: str) -> Number:
    """Parse and evaluate a plain arithmetic string."""
    tree = parse_expression(expression)
    try:
        result = _Calculator().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, FormulaError):
            raise exc.orig_exc from None
        raise
    if isinstance(result, complex) or not math.isfinite(result):
        raise NonFiniteResultError()
    return _normalize(result)


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------


def format_value(value: Number) -> str:
    """Render a number in plain decimal notation (never ``1e-07``).

    Integral values are written without a fractional part.
    """
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        raise NonFiniteResultError(f"tag value {value!r}")
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def substitute_tags(text: str, tags: Iterable[Tag] | Mapping[int, Tag] = ()) -> str:
    """Replace each tag span with the decimal text of its value.

    Tags are processed by descending position so earlier replacements never
    move the spans still to be replaced.
    """
    if isinstance(tags, Mapping):
        tags = tags.values()
    out = text
    for tag in sorted(tags, key=lambda t: t.position, reverse=True):
        out = out[:tag.position] + format_value(tag.value) + out[tag.end:]
    return out


def check_parentheses(expression: str) -> None:
    depth = 0
    for i, char in enumerate(expression):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise UnbalancedParenthesesError(position=i)
    if depth != 0:
        raise UnbalancedParenthesesError()


def strip_trailing_operator(expression: str) -> str:
    """Drop a single dangling operator (and the whitespace after it)."""
    stripped = expression.rstrip()
    if stripped and stripped[-1] in TRAILING_OPERATORS:
        return stripped[:-1]
    return expression


def _invalid_characters(expression: str) -> list[str]:
    seen: list[str] = []
    for char in expression:
        if char not in ALLOWED_CHARACTERS and char not in seen:
            seen.append(char)
    return seen


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------


class _Calculator(Transformer_NonRecursive):
    """Fold a parse tree bottom-up into a float.

    Walks with an explicit stack, so long sums and unary chains do not
    hit the interpreter's recursion limit.
    """

    def number(self, children: list[Token]) -> float:
        return _parse_number(children[0])

    def add(self, children: list[float]) -> float:
        return children[0] + children[1]

    def sub(self, children: list[float]) -> float:
        return children[0] - children[1]

    def mul(self, children: list[float]) -> float:
        return children[0] * children[1]

    def div(self, children: list[float]) -> float:
        left, right = children
        if right == 0:
            raise DivisionByZeroError()
        return left / right

    def neg(self, children: list[float]) -> float:
        return -children[0]

    def pos(self, children: list[float]) -> float:
        return children[0]

    def pow(self, children: list[float]) -> float:
        return _power(children[0], children[1])

    def __default__(self, data, children, meta):
        raise MalformedExpressionError(f"unknown node type {data!r}")


def _power(base: float, exponent: float) -> float:
    try:
        result = base ** exponent
    except ZeroDivisionError:
        raise NonFiniteResultError("zero raised to a negative power") from None
    except OverflowError:
        raise NonFiniteResultError("exponentiation overflow") from None
    if isinstance(result, complex):
        raise NonFiniteResultError("negative base with fractional exponent")
    return result


def _parse_number(token: Token) -> float:
    try:
        value = float(str(token))
    except ValueError:
        raise MalformedExpressionError(f"invalid number {str(token)!r}") from None
    if not math.isfinite(value):
        raise NonFiniteResultError("number too large")
    return value


def _normalize(result: float) -> Number:
    """Return integral results as ``int`` (``-0.0`` becomes ``0``)."""
    if result.is_integer() and abs(result) < _MAX_EXACT_INT:
        return int(result)
    return result
