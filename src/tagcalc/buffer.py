"""Tag-aware single-line formula buffer.

The buffer owns the formula text, the tags anchored inside it, the cursor
and the (optional) active tag.  Every tag's span ``[position, end)`` always
holds the tag's name verbatim; edits shift the tags that sit after the edit
point so this keeps holding.

Mutations validate their arguments first, then apply, then re-check the
invariants.  A mutation that would leave the buffer inconsistent is rolled
back and reported, so callers never observe a half-applied edit.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Union

from tagcalc.errors import (
    DuplicateIdError,
    InvariantViolationError,
    OutOfRangeError,
    TagNotFoundError,
    TagSpanError,
)
from tagcalc.models import BufferState, Suggestion, Tag, TagSegment, TextSegment

Segment = Union[TextSegment, TagSegment]


class FormulaRendering:
    """Ordered view of a buffer as alternating text runs and tags.

    Built from a snapshot, so it can be iterated any number of times and is
    unaffected by later edits to the buffer.
    """

    def __init__(self, text: str, tags: tuple[Tag, ...]) -> None:
        self._text = text
        self._tags = tags

    def __iter__(self) -> Iterator[Segment]:
        last = 0
        for tag in self._tags:
            if tag.position > last:
                yield TextSegment(text=self._text[last:tag.position], start=last)
            yield TagSegment(tag=tag)
            last = tag.end
        if last < len(self._text):
            yield TextSegment(text=self._text[last:], start=last)

    def __repr__(self) -> str:
        return f"FormulaRendering({self._text!r}, tags={len(self._tags)})"


class FormulaBuffer:
    """Formula text with position-consistent embedded tags."""

    def __init__(self) -> None:
        """Initialize an empty buffer."""
        self._text = ""
        self._tags: dict[int, Tag] = {}
        self._cursor = 0
        self._active_tag_id: int | None = None

    @classmethod
    def from_formula(cls, text: str, variables: dict[str, float]) -> FormulaBuffer:
        """Build a buffer from plain formula text, tagging known variable names.

        Names are matched left to right, longest first, so ``RevenuePerEmployee``
        wins over ``Revenue``.  Tags get ids 1, 2, ... in text order and the
        cursor ends up at the end of the text.
        """
        buffer = cls()
        names = sorted((n for n in variables if n), key=len, reverse=True)
        next_id = 1
        i = 0
        plain_start = 0
        while i < len(text):
            name = next((n for n in names if text.startswith(n, i)), None)
            if name is None:
                i += 1
                continue
            if plain_start < i:
                buffer.insert_text(len(buffer), text[plain_start:i])
            buffer.insert_tag(Suggestion(id=next_id, name=name, value=variables[name]), len(buffer))
            next_id += 1
            i += len(name)
            plain_start = i
        if plain_start < len(text):
            buffer.insert_text(len(buffer), text[plain_start:])
        buffer.set_cursor(len(buffer))
        return buffer

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def tags(self) -> dict[int, Tag]:
        """Copy of the tag mapping keyed by id."""
        return dict(self._tags)

    @property
    def active_tag_id(self) -> int | None:
        return self._active_tag_id

    @property
    def active_tag(self) -> Tag | None:
        if self._active_tag_id is None:
            return None
        return self._tags[self._active_tag_id]

    def __len__(self) -> int:
        return len(self._text)

    def get_tag(self, tag_id: int) -> Tag:
        """Return the tag with *tag_id*.

        Raises:
            TagNotFoundError: If no such tag exists.
        """
        try:
            return self._tags[tag_id]
        except KeyError:
            raise TagNotFoundError(tag_id, available=sorted(self._tags)) from None

    def sorted_tags(self) -> list[Tag]:
        """Tags in ascending position order."""
        return sorted(self._tags.values(), key=lambda t: t.position)

    def tag_at(self, offset: int) -> Tag | None:
        """Return the tag whose span covers *offset*, if any.

        A tag covers the offsets ``position <= offset < end``.
        """
        for tag in self._tags.values():
            if tag.position <= offset < tag.end:
                return tag
        return None

    def tag_immediately_before_cursor(self) -> Tag | None:
        """Return the tag whose span ends exactly at the cursor.

        If several tags qualify the one with the largest position wins.
        """
        candidates = [t for t in self._tags.values() if t.end == self._cursor]
        if not candidates:
            return None
        return max(candidates, key=lambda t: t.position)

    def ordered_render(self) -> FormulaRendering:
        """Return the buffer as an ordered, restartable segment sequence."""
        return FormulaRendering(self._text, tuple(self.sorted_tags()))

    def snapshot(self) -> BufferState:
        return BufferState(
            text=self._text,
            tags=tuple(self.sorted_tags()),
            cursor=self._cursor,
            active_tag_id=self._active_tag_id,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert_text(self, at: int, s: str) -> None:
        """Splice *s* into the text at offset *at*.

        Tags starting at or after *at* shift right by ``len(s)``.  The
        cursor is left where it was.

        Raises:
            OutOfRangeError: If *at* is outside ``[0, len(text)]``.
            TagSpanError: If *at* falls strictly inside a tag's span.
        """
        self._check_offset(at)
        self._check_not_inside_tag(at, "Cannot insert text inside a tag")
        if not s:
            return
        with self._transaction():
            self._splice_in(at, s)

    def delete_range(self, start: int, end: int) -> None:
        """Remove ``text[start:end]``.

        Tags at or after *end* shift left by ``end - start``.  Tags whose
        span lies entirely inside the range are dropped along with their
        text.  The cursor is clamped to the new text length.

        Raises:
            OutOfRangeError: If ``start > end`` or a bound is out of range.
            TagSpanError: If the range cuts through part of a tag's span.
        """
        if start > end:
            raise OutOfRangeError("Range start is after range end", start, len(self._text))
        self._check_offset(start)
        self._check_offset(end)
        if start == end:
            return

        dropped: list[int] = []
        for tag in self._tags.values():
            if tag.end <= start or tag.position >= end:
                continue
            if start <= tag.position and tag.end <= end:
                dropped.append(tag.id)
                continue
            raise TagSpanError("Range partially overlaps a tag", tag.id)

        width = end - start
        with self._transaction():
            for tag_id in dropped:
                del self._tags[tag_id]
                if self._active_tag_id == tag_id:
                    self._active_tag_id = None
            self._text = self._text[:start] + self._text[end:]
            self._tags = {
                tid: (t.shifted(-width) if t.position >= end else t)
                for tid, t in self._tags.items()
            }
            self._cursor = min(self._cursor, len(self._text))

    def insert_tag(self, suggestion: Suggestion, at: int) -> Tag:
        """Insert a tag for *suggestion* at offset *at*.

        The tag's name is spliced into the text (shifting later tags as
        :meth:`insert_text` does) and the cursor moves just past it.

        Returns:
            The newly created tag.

        Raises:
            DuplicateIdError: If a tag with the same id is present.
            OutOfRangeError: If *at* is outside ``[0, len(text)]``.
            TagSpanError: If *at* falls strictly inside another tag.
        """
        if suggestion.id in self._tags:
            raise DuplicateIdError(suggestion.id)
        self._check_offset(at)
        self._check_not_inside_tag(at, "Cannot insert a tag inside another tag")

        tag = Tag(id=suggestion.id, name=suggestion.name, value=suggestion.value, position=at)
        with self._transaction():
            self._splice_in(at, tag.name)
            self._tags[tag.id] = tag
            self._cursor = tag.end
        return tag

    def remove_tag_with_span(self, tag_id: int) -> Tag:
        """Remove a tag together with its backing text.

        Tags after the removed one shift left by the name length and the
        cursor moves to where the tag started.

        Returns:
            The removed tag.

        Raises:
            TagNotFoundError: If no tag has *tag_id*.
        """
        tag = self.get_tag(tag_id)
        width = len(tag.name)
        with self._transaction():
            del self._tags[tag_id]
            self._text = self._text[:tag.position] + self._text[tag.end:]
            self._tags = {
                tid: (t.shifted(-width) if t.position > tag.position else t)
                for tid, t in self._tags.items()
            }
            self._cursor = tag.position
            if self._active_tag_id == tag_id:
                self._active_tag_id = None
        return tag

    def set_cursor(self, offset: int) -> None:
        """Move the cursor to *offset*.

        Raises:
            OutOfRangeError: If *offset* is outside ``[0, len(text)]``.
        """
        self._check_offset(offset)
        self._cursor = offset

    def set_active_tag(self, tag_id: int | None) -> None:
        """Open *tag_id* for inspection, or close the active tag with ``None``."""
        if tag_id is not None:
            self.get_tag(tag_id)
        self._active_tag_id = tag_id

    def toggle_active_tag(self, tag_id: int) -> int | None:
        """Open *tag_id*, or close it if it is already the active tag."""
        self.get_tag(tag_id)
        self._active_tag_id = None if self._active_tag_id == tag_id else tag_id
        return self._active_tag_id

    def reset(self) -> None:
        self._text = ""
        self._tags = {}
        self._cursor = 0
        self._active_tag_id = None

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def check_invariants(self) -> None:
        """Verify tag spans, cursor and active tag against the text.

        Raises:
            InvariantViolationError: Describing the first violation found.
        """
        length = len(self._text)
        if not 0 <= self._cursor <= length:
            raise InvariantViolationError(f"Cursor {self._cursor} outside text of length {length}")

        prev: Tag | None = None
        for tag in self.sorted_tags():
            if tag.position < 0 or tag.end > length:
                raise InvariantViolationError(f"Tag {tag.id} span [{tag.position}, {tag.end}) out of range")
            if self._text[tag.position:tag.end] != tag.name:
                raise InvariantViolationError(f"Tag {tag.id} span does not match its name {tag.name!r}")
            if prev is not None and tag.position < prev.end:
                raise InvariantViolationError(f"Tags {prev.id} and {tag.id} overlap")
            prev = tag

        if self._active_tag_id is not None and self._active_tag_id not in self._tags:
            raise InvariantViolationError(f"Active tag {self._active_tag_id} is not present")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_offset(self, offset: int) -> None:
        if offset < 0 or offset > len(self._text):
            raise OutOfRangeError("Offset out of range", offset, len(self._text))

    def _check_not_inside_tag(self, offset: int, message: str) -> None:
        for tag in self._tags.values():
            if tag.position < offset < tag.end:
                raise TagSpanError(message, tag.id)

    def _splice_in(self, at: int, s: str) -> None:
        self._text = self._text[:at] + s + self._text[at:]
        self._tags = {
            tid: (t.shifted(len(s)) if t.position >= at else t)
            for tid, t in self._tags.items()
        }

    def _transaction(self) -> _Transaction:
        return _Transaction(self)


class _Transaction:
    """Restore the buffer if a mutation raises or breaks an invariant."""

    def __init__(self, buffer: FormulaBuffer) -> None:
        self._buffer = buffer

    def __enter__(self) -> None:
        b = self._buffer
        self._saved = (b._text, dict(b._tags), b._cursor, b._active_tag_id)

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                self._buffer.check_invariants()
            except InvariantViolationError:
                self._restore()
                raise
            return False
        self._restore()
        return False

    def _restore(self) -> None:
        b = self._buffer
        b._text, b._tags, b._cursor, b._active_tag_id = self._saved
