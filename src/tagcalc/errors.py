"""Error types raised by the formula buffer.

Buffer errors signal a contract violation by the caller (bad offset, bad
id).  The buffer is never partially mutated when one of these is raised.
"""

from __future__ import annotations


class FormulaBufferError(Exception):
    """Base class for all formula buffer errors."""


class OutOfRangeError(FormulaBufferError):
    """An offset or range falls outside ``[0, len(text)]``.

    Attributes:
        offset: The offending offset (or range start).
        length: Length of the buffer text at the time of the call.
    """

    def __init__(self, message: str, offset: int | None = None, length: int | None = None) -> None:
        self.offset = offset
        self.length = length
        full = message
        if offset is not None and length is not None:
            full += f" (offset {offset}, length {length})"
        super().__init__(full)


class DuplicateIdError(FormulaBufferError):
    """A tag with the same id is already present."""

    def __init__(self, tag_id: int) -> None:
        self.tag_id = tag_id
        super().__init__(f"Tag id already present: {tag_id}")


class TagNotFoundError(FormulaBufferError):
    """No tag with the requested id exists.

    Attributes:
        tag_id: The unresolved id.
        available: Ids currently present in the buffer.
    """

    def __init__(self, tag_id: int, available: list[int] | None = None) -> None:
        self.tag_id = tag_id
        self.available = available or []
        msg = f"Unknown tag id: {tag_id}"
        if self.available:
            msg += f". Available: {self.available}"
        super().__init__(msg)


class TagSpanError(FormulaBufferError):
    """An edit would split or partially delete a tag's backing text."""

    def __init__(self, message: str, tag_id: int) -> None:
        self.tag_id = tag_id
        super().__init__(f"{message} (tag {tag_id})")


class InvariantViolationError(FormulaBufferError):
    """A mutation left the buffer inconsistent and was rolled back."""
