"""Tests for the tag-aware formula buffer."""

from __future__ import annotations

import pytest

from tagcalc.buffer import FormulaBuffer
from tagcalc.errors import (
    DuplicateIdError,
    FormulaBufferError,
    InvariantViolationError,
    OutOfRangeError,
    TagNotFoundError,
    TagSpanError,
)
from tagcalc.models import Suggestion, Tag, TagSegment, TextSegment


def _s(tag_id: int, name: str, value: float = 1.0) -> Suggestion:
    return Suggestion(id=tag_id, name=name, value=value)


@pytest.fixture
def buf() -> FormulaBuffer:
    """Buffer holding ``Revenue - Expenses * 2``."""
    b = FormulaBuffer()
    b.insert_tag(_s(1, "Revenue", 1000), 0)
    b.insert_text(len(b), " - ")
    b.insert_tag(_s(2, "Expenses", 500), len(b))
    b.insert_text(len(b), " * 2")
    b.set_cursor(len(b))
    return b


# ────────────────────────────────────────────────────────────────
# insert_text
# ────────────────────────────────────────────────────────────────


class TestInsertText:
    def test_insert_into_empty(self) -> None:
        b = FormulaBuffer()
        b.insert_text(0, "3+4")
        assert b.text == "3+4"
        assert b.cursor == 0

    def test_cursor_not_moved(self, buf: FormulaBuffer) -> None:
        buf.set_cursor(3)
        buf.insert_text(0, "(")
        assert buf.cursor == 3

    def test_shifts_tags_at_or_after_offset(self, buf: FormulaBuffer) -> None:
        buf.insert_text(0, "(")
        assert buf.get_tag(1).position == 1
        assert buf.get_tag(2).position == 11
        assert buf.text == "(Revenue - Expenses * 2"
        buf.check_invariants()

    def test_insert_at_tag_end_does_not_shift_that_tag(self, buf: FormulaBuffer) -> None:
        buf.insert_text(7, "+1")
        assert buf.get_tag(1).position == 0
        assert buf.get_tag(2).position == 12
        assert buf.text == "Revenue+1 - Expenses * 2"

    def test_insert_at_end(self, buf: FormulaBuffer) -> None:
        buf.insert_text(len(buf), "^2")
        assert buf.text.endswith("* 2^2")
        assert buf.get_tag(2).position == 10

    def test_empty_string_is_noop(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        buf.insert_text(7, "")
        assert buf.snapshot() == before

    @pytest.mark.parametrize("at", [-1, 100])
    def test_out_of_range(self, buf: FormulaBuffer, at: int) -> None:
        before = buf.snapshot()
        with pytest.raises(OutOfRangeError):
            buf.insert_text(at, "x")
        assert buf.snapshot() == before

    def test_inside_tag_rejected(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        with pytest.raises(TagSpanError) as exc_info:
            buf.insert_text(3, "9")
        assert exc_info.value.tag_id == 1
        assert buf.snapshot() == before


# ────────────────────────────────────────────────────────────────
# delete_range
# ────────────────────────────────────────────────────────────────


class TestDeleteRange:
    def test_delete_operator_shifts_later_tags(self, buf: FormulaBuffer) -> None:
        # "Revenue - Expenses * 2" -> remove "-"
        buf.delete_range(8, 9)
        assert buf.text == "Revenue  Expenses * 2"
        assert buf.get_tag(1).position == 0
        assert buf.get_tag(2).position == 9
        buf.check_invariants()

    def test_delete_trailing_digit(self, buf: FormulaBuffer) -> None:
        buf.delete_range(len(buf) - 1, len(buf))
        assert buf.text == "Revenue - Expenses * "
        assert buf.cursor == len(buf)

    def test_cursor_clamped(self) -> None:
        b = FormulaBuffer()
        b.insert_text(0, "12345")
        b.set_cursor(5)
        b.delete_range(1, 4)
        assert b.text == "15"
        assert b.cursor == 2

    def test_fully_covered_tag_dropped(self, buf: FormulaBuffer) -> None:
        buf.set_active_tag(2)
        buf.delete_range(7, 18)
        assert buf.text == "Revenue * 2"
        assert set(buf.tags) == {1}
        assert buf.active_tag_id is None

    def test_partial_overlap_rejected(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        with pytest.raises(TagSpanError):
            buf.delete_range(5, 9)
        assert buf.snapshot() == before

    def test_empty_range_is_noop(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        buf.delete_range(3, 3)
        assert buf.snapshot() == before

    @pytest.mark.parametrize("start,end", [(5, 4), (-1, 2), (0, 100)])
    def test_out_of_range(self, buf: FormulaBuffer, start: int, end: int) -> None:
        with pytest.raises(OutOfRangeError):
            buf.delete_range(start, end)


# ────────────────────────────────────────────────────────────────
# insert_tag / remove_tag_with_span
# ────────────────────────────────────────────────────────────────


class TestInsertTag:
    def test_insert_sets_cursor_after_name(self) -> None:
        b = FormulaBuffer()
        b.insert_text(0, "2*")
        tag = b.insert_tag(_s(7, "Profit", 500), 2)
        assert isinstance(tag, Tag)
        assert tag.position == 2
        assert tag.end == 8
        assert b.text == "2*Profit"
        assert b.cursor == 8

    def test_shift_is_exactly_name_length(self, buf: FormulaBuffer) -> None:
        buf.insert_tag(_s(3, "Tax", 0.2), 10)
        assert buf.get_tag(1).position == 0
        assert buf.get_tag(2).position == 13
        assert buf.text == "Revenue - TaxExpenses * 2"
        buf.check_invariants()

    def test_value_snapshot(self) -> None:
        b = FormulaBuffer()
        tag = b.insert_tag(_s(1, "Rate", 3), 0)
        assert tag.value == 3.0

    def test_duplicate_id(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        with pytest.raises(DuplicateIdError) as exc_info:
            buf.insert_tag(_s(1, "Other"), 0)
        assert exc_info.value.tag_id == 1
        assert buf.snapshot() == before

    def test_inside_other_tag_rejected(self, buf: FormulaBuffer) -> None:
        with pytest.raises(TagSpanError):
            buf.insert_tag(_s(9, "X"), 2)

    def test_out_of_range(self, buf: FormulaBuffer) -> None:
        with pytest.raises(OutOfRangeError):
            buf.insert_tag(_s(9, "X"), len(buf) + 1)


class TestRemoveTag:
    def test_remove_shifts_later_tags(self, buf: FormulaBuffer) -> None:
        removed = buf.remove_tag_with_span(1)
        assert removed.name == "Revenue"
        assert buf.text == " - Expenses * 2"
        assert buf.get_tag(2).position == 3
        assert buf.cursor == 0

    def test_remove_last_tag(self, buf: FormulaBuffer) -> None:
        buf.remove_tag_with_span(2)
        assert buf.text == "Revenue -  * 2"
        assert buf.cursor == 10
        assert list(buf.tags) == [1]

    def test_remove_clears_active(self, buf: FormulaBuffer) -> None:
        buf.set_active_tag(1)
        buf.remove_tag_with_span(1)
        assert buf.active_tag_id is None

    def test_not_found(self, buf: FormulaBuffer) -> None:
        with pytest.raises(TagNotFoundError) as exc_info:
            buf.remove_tag_with_span(42)
        assert exc_info.value.available == [1, 2]

    def test_insert_then_remove_restores_state(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        buf.insert_tag(_s(5, "Margin", 0.3), 10)
        buf.remove_tag_with_span(5)
        after = buf.snapshot()
        assert after.text == before.text
        assert after.tags == before.tags
        assert buf.cursor == 10

    def test_errors_share_base_class(self) -> None:
        assert issubclass(TagNotFoundError, FormulaBufferError)
        assert issubclass(OutOfRangeError, FormulaBufferError)


# ────────────────────────────────────────────────────────────────
# Cursor and lookups
# ────────────────────────────────────────────────────────────────


class TestCursor:
    def test_set_cursor_bounds(self, buf: FormulaBuffer) -> None:
        buf.set_cursor(0)
        buf.set_cursor(len(buf))
        with pytest.raises(OutOfRangeError):
            buf.set_cursor(len(buf) + 1)
        with pytest.raises(OutOfRangeError):
            buf.set_cursor(-1)
        assert buf.cursor == len(buf)

    def test_tag_immediately_before_cursor(self, buf: FormulaBuffer) -> None:
        buf.set_cursor(7)
        assert buf.tag_immediately_before_cursor().id == 1
        buf.set_cursor(18)
        assert buf.tag_immediately_before_cursor().id == 2
        buf.set_cursor(8)
        assert buf.tag_immediately_before_cursor() is None

    def test_adjacent_tags(self) -> None:
        b = FormulaBuffer()
        b.insert_tag(_s(1, "A"), 0)
        b.insert_tag(_s(2, "B"), 1)
        assert b.text == "AB"
        assert b.tag_immediately_before_cursor().id == 2
        b.set_cursor(1)
        assert b.tag_immediately_before_cursor().id == 1

    def test_tag_at(self, buf: FormulaBuffer) -> None:
        assert buf.tag_at(0).id == 1
        assert buf.tag_at(6).id == 1
        assert buf.tag_at(7) is None
        assert buf.tag_at(10).id == 2


class TestActiveTag:
    def test_toggle(self, buf: FormulaBuffer) -> None:
        assert buf.toggle_active_tag(2) == 2
        assert buf.active_tag.name == "Expenses"
        assert buf.toggle_active_tag(2) is None
        assert buf.active_tag is None

    def test_switch(self, buf: FormulaBuffer) -> None:
        buf.toggle_active_tag(1)
        buf.toggle_active_tag(2)
        assert buf.active_tag_id == 2

    def test_unknown(self, buf: FormulaBuffer) -> None:
        with pytest.raises(TagNotFoundError):
            buf.set_active_tag(99)


# ────────────────────────────────────────────────────────────────
# Rendering
# ────────────────────────────────────────────────────────────────


class TestOrderedRender:
    def test_segments_cover_text(self, buf: FormulaBuffer) -> None:
        segments = list(buf.ordered_render())
        kinds = [s.kind for s in segments]
        assert kinds == ["tag", "text", "tag", "text"]
        assert isinstance(segments[1], TextSegment)
        assert segments[1].text == " - "
        assert segments[1].start == 7
        rebuilt = "".join(s.tag.name if isinstance(s, TagSegment) else s.text for s in segments)
        assert rebuilt == buf.text

    def test_restartable(self, buf: FormulaBuffer) -> None:
        rendering = buf.ordered_render()
        assert list(rendering) == list(rendering)

    def test_snapshot_unaffected_by_later_edits(self, buf: FormulaBuffer) -> None:
        rendering = buf.ordered_render()
        buf.remove_tag_with_span(1)
        assert list(rendering)[0].tag.name == "Revenue"

    def test_empty_buffer(self) -> None:
        assert list(FormulaBuffer().ordered_render()) == []

    def test_tags_sorted_regardless_of_insertion_order(self) -> None:
        b = FormulaBuffer()
        b.insert_tag(_s(10, "Late"), 0)
        b.insert_tag(_s(3, "Early"), 0)
        names = [s.tag.name for s in b.ordered_render() if isinstance(s, TagSegment)]
        assert names == ["Early", "Late"]


# ────────────────────────────────────────────────────────────────
# Construction helpers and invariants
# ────────────────────────────────────────────────────────────────


class TestFromFormula:
    def test_longest_name_wins(self) -> None:
        b = FormulaBuffer.from_formula(
            "RevenuePerEmployee*Revenue",
            {"Revenue": 1000, "RevenuePerEmployee": 20},
        )
        names = [t.name for t in b.sorted_tags()]
        assert names == ["RevenuePerEmployee", "Revenue"]
        assert b.cursor == len(b.text)
        b.check_invariants()

    def test_no_variables(self) -> None:
        b = FormulaBuffer.from_formula("1+2", {})
        assert b.text == "1+2"
        assert b.tags == {}


class TestInvariants:
    def test_corruption_detected(self, buf: FormulaBuffer) -> None:
        buf._text = "Revenux - Expenses * 2"
        with pytest.raises(InvariantViolationError):
            buf.check_invariants()

    def test_rollback_on_violation(self, buf: FormulaBuffer) -> None:
        before = buf.snapshot()
        buf._tags[1] = buf._tags[1].shifted(1)
        with pytest.raises(InvariantViolationError):
            buf.insert_text(len(buf), "+1")
        assert buf.text == before.text

    def test_reset(self, buf: FormulaBuffer) -> None:
        buf.set_active_tag(1)
        buf.reset()
        assert buf.snapshot().model_dump() == {
            "text": "",
            "tags": (),
            "cursor": 0,
            "active_tag_id": None,
        }
