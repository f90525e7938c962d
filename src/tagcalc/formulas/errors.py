"""Error types for formula evaluation.

Every error carries a stable ``code`` so callers can display or log the
outcome without matching on message text.
"""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula evaluation errors."""

    code = "formula_error"


class UnbalancedParenthesesError(FormulaError):
    """Parentheses do not pair up.

    Attributes:
        position: Offset of the first unmatched ``)``, or ``None`` when an
            opening parenthesis is left unclosed.
    """

    code = "unbalanced_parentheses"

    def __init__(self, position: int | None = None) -> None:
        self.position = position
        msg = "Unbalanced parentheses"
        if position is not None:
            msg += f" (unexpected ')' at position {position})"
        super().__init__(msg)


class InvalidCharactersError(FormulaError):
    """The substituted formula contains characters outside the arithmetic set.

    Attributes:
        characters: The offending characters, in first-seen order.
    """

    code = "invalid_characters"

    def __init__(self, characters: list[str]) -> None:
        self.characters = characters
        super().__init__(f"Formula contains invalid characters: {''.join(characters)!r}")


class DivisionByZeroError(FormulaError):
    code = "division_by_zero"

    def __init__(self) -> None:
        super().__init__("Division by zero in formula")


class MalformedExpressionError(FormulaError):
    """Syntax error in the arithmetic expression.

    Attributes:
        position: Character position where the error was detected.
    """

    code = "malformed_expression"

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Malformed expression: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class NonFiniteResultError(FormulaError):
    """The computation produced infinity, NaN or a non-real number."""

    code = "non_finite_result"

    def __init__(self, detail: str | None = None) -> None:
        msg = "Formula result is not a finite number"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

