"""Value types shared by the buffer, evaluator and session."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat


class Suggestion(BaseModel):
    """A variable candidate offered by a suggestion source."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = Field(min_length=1)
    value: FiniteFloat = 0.0


class Tag(Suggestion):
    """A suggestion anchored at a character offset in the formula text.

    ``value`` is the snapshot taken when the tag was inserted.
    """

    position: int = Field(ge=0)

    @property
    def end(self) -> int:
        """Offset one past the last character of the tag's span."""
        return self.position + len(self.name)

    def shifted(self, delta: int) -> Tag:
        return self.model_copy(update={"position": self.position + delta})


class TextSegment(BaseModel):
    """A run of plain formula text between tags."""

    model_config = ConfigDict(frozen=True)

    kind: str = "text"
    text: str
    start: int


class TagSegment(BaseModel):
    """A tag reference in render order."""

    model_config = ConfigDict(frozen=True)

    kind: str = "tag"
    tag: Tag

    @property
    def start(self) -> int:
        return self.tag.position


class BufferState(BaseModel):
    """Immutable snapshot of a formula buffer."""

    model_config = ConfigDict(frozen=True)

    text: str
    tags: tuple[Tag, ...]
    cursor: int
    active_tag_id: int | None = None
