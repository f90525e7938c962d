"""Safe arithmetic evaluation of tag formulas.

Public API::

    from tagcalc.formulas import evaluate, calculate, Evaluation
"""

from tagcalc.formulas.errors import (
    DivisionByZeroError,
    FormulaError,
    InvalidCharactersError,
    MalformedExpressionError,
    NonFiniteResultError,
    UnbalancedParenthesesError,
)
from tagcalc.formulas.evaluator import (
    Evaluation,
    calculate,
    evaluate,
    evaluate_expression,
    format_value,
    prepare_expression,
    substitute_tags,
)
from tagcalc.formulas.parser import parse_expression

__all__ = [
    "DivisionByZeroError",
    "Evaluation",
    "FormulaError",
    "InvalidCharactersError",
    "MalformedExpressionError",
    "NonFiniteResultError",
    "UnbalancedParenthesesError",
    "calculate",
    "evaluate",
    "evaluate_expression",
    "format_value",
    "parse_expression",
    "prepare_expression",
    "substitute_tags",
]
