"""Lark-based parser for substituted arithmetic formulas.

The input has already had its tags replaced by numbers, so the grammar only
knows numbers, the operators ``+ - * / ^`` and parentheses.
"""

from __future__ import annotations

from lark import Lark, Tree
from lark.exceptions import LarkError, UnexpectedInput

from tagcalc.formulas.errors import MalformedExpressionError

# LALR(1) grammar for plain arithmetic.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -
#   2. Multiplication/division: * /
#   3. Unary plus/minus: + -  (chains such as --3 are allowed)
#   4. Exponentiation: ^ (right-associative, -2^2 = -4)
#   5. Atoms: number, parenthesized expr
GRAMMAR = r"""
?start: addition

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: atom
    | atom "^" unary  -> pow

?atom: NUMBER  -> number
    | "(" addition ")"

NUMBER: /\d+(?:\.\d*)?|\.\d+/

%import common.WS_INLINE
%ignore WS_INLINE
"""

_parser = Lark(GRAMMAR, parser="lalr", start="start")


def parse_expression(text: str) -> Tree:
    """Parse an arithmetic expression into a Lark tree.

    Args:
        text: The substituted formula, e.g. ``"1000 * (1 - 0.2)"``.

    Returns:
        A Lark parse tree.

    Raises:
        MalformedExpressionError: If the expression has invalid syntax.
    """
    try:
        return _parser.parse(text)
    except UnexpectedInput as exc:
        pos = getattr(exc, "pos_in_stream", None)
        raise MalformedExpressionError(_describe(exc), position=pos) from exc
    except LarkError as exc:
        raise MalformedExpressionError(str(exc)) from exc


def _describe(exc: UnexpectedInput) -> str:
    token = getattr(exc, "token", None)
    if token is not None:
        if token.type == "$END":
            return "unexpected end of expression"
        return f"unexpected {str(token)!r}"
    char = getattr(exc, "char", None)
    if char is not None:
        return f"unexpected character {char!r}"
    return "invalid syntax"
