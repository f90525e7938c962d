"""Editing session: keystroke policy on top of the formula buffer.

The session is what a UI talks to.  It owns a :class:`FormulaBuffer`, the
pending search term typed for variable lookup and the latest evaluation,
and it turns recognised keys into buffer edits:

- digits and ``+ - * / ( ) ^`` are inserted at the cursor; an operator
  also clears the search term and opens the suggestion list
- other printable characters go to the search term
- ``Backspace`` edits the search term first, then removes a whole tag
  ending at the cursor, otherwise the previous character
- arrow keys move one character but never stop inside a tag
- ``Enter`` picks the first suggestion, ``Escape`` closes the list

The formula is re-evaluated after every change to the buffer.
"""

from __future__ import annotations

import itertools
import uuid
from pathlib import Path

from tagcalc.buffer import FormulaBuffer, FormulaRendering
from tagcalc.formulas import Evaluation, calculate
from tagcalc.logging import (
    EventLevel,
    EventType,
    emit,
    make_session_event,
)
from tagcalc.models import Suggestion, Tag
from tagcalc.suggestions import SuggestionCatalog, SuggestionSource

OPERATORS = frozenset("+-*/()^")
DIGITS = frozenset("0123456789")


class FormulaSession:
    """A single formula being edited, with live evaluation."""

    def __init__(
        self,
        source: SuggestionSource | None = None,
        *,
        session_id: str | None = None,
        suggestion_limit: int = 10,
    ) -> None:
        """Initialize an empty session.

        Args:
            source: Where variable suggestions come from.  Defaults to the
                built-in catalog.
            session_id: Identifier used in log events.
            suggestion_limit: Maximum number of suggestions offered.
        """
        self.buffer = FormulaBuffer()
        self.source: SuggestionSource = source if source is not None else SuggestionCatalog()
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.suggestion_limit = suggestion_limit
        self.search_term = ""
        self.show_suggestions = False
        self._tag_ids = itertools.count(1)
        self._result = Evaluation()
        self._log(EventType.session_started, EventLevel.info, "Session started")

    @classmethod
    def from_project(cls, project_dir: Path, *, session_id: str | None = None) -> FormulaSession:
        """Create a session configured from ``tagcalc.yaml`` in *project_dir*.

        Also points the event log at the project's ``logs/`` directory.
        """
        from tagcalc.logging import set_project_dir
        from tagcalc.project import load_project_config
        from tagcalc.suggestions import load_catalog

        set_project_dir(project_dir)
        config = load_project_config(project_dir)
        return cls(
            load_catalog(project_dir),
            session_id=session_id,
            suggestion_limit=int(config.get("suggestion_limit", 10)),
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return self.buffer.text

    @property
    def cursor(self) -> int:
        return self.buffer.cursor

    @property
    def result(self) -> Evaluation:
        """Evaluation of the formula as of the last change."""
        return self._result

    @property
    def suggestions(self) -> list[Suggestion]:
        if not self.show_suggestions or not self.search_term.strip():
            return []
        return self.source.search(self.search_term)[: self.suggestion_limit]

    def render(self) -> FormulaRendering:
        return self.buffer.ordered_render()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def press(self, key: str) -> bool:
        """Apply a single key press.

        Args:
            key: A single character, or one of ``Backspace``, ``Enter``,
                ``Escape``, ``ArrowLeft``, ``ArrowRight``, ``Home``, ``End``.

        Returns:
            ``True`` if the key was recognised.
        """
        if key in OPERATORS:
            self._insert_char(key)
            # Leave the list open for the next variable.
            self.search_term = ""
            self.show_suggestions = True
            return True
        if key in DIGITS:
            self._insert_char(key)
            return True
        if key == "Backspace":
            self.backspace()
            return True
        if key == "ArrowLeft":
            self.move_left()
            return True
        if key == "ArrowRight":
            self.move_right()
            return True
        if key == "Home":
            self.buffer.set_cursor(0)
            return True
        if key == "End":
            self.buffer.set_cursor(len(self.buffer))
            return True
        if key == "Enter":
            options = self.suggestions
            if options:
                self.select_suggestion(options[0])
            return True
        if key == "Escape":
            self.show_suggestions = False
            return True
        if len(key) == 1 and key.isprintable():
            self.type_search(self.search_term + key)
            return True
        return False

    def type_keys(self, keys: str) -> None:
        """Press each character of *keys* in turn."""
        for key in keys:
            self.press(key)

    def type_search(self, term: str) -> None:
        """Replace the pending search term."""
        self.search_term = term
        self.show_suggestions = bool(term.strip())

    def select_suggestion(self, suggestion: Suggestion) -> Tag:
        """Insert *suggestion* as a tag at the cursor and clear the search.

        Each insertion gets a fresh tag id so the same variable can appear
        more than once in a formula.
        """
        chosen = Suggestion(id=self._next_tag_id(), name=suggestion.name, value=suggestion.value)
        tag = self.buffer.insert_tag(chosen, self._insertion_point())
        self.type_search("")
        self._log(
            EventType.tag_inserted,
            EventLevel.info,
            f"Inserted tag {tag.name!r}",
            extra={"tag_id": tag.id, "suggestion_id": suggestion.id, "position": tag.position},
        )
        self._refresh()
        return tag

    def backspace(self) -> None:
        if self.search_term:
            self.type_search(self.search_term[:-1])
            return

        cursor = self.buffer.cursor
        if cursor == 0:
            return

        tag = self.buffer.tag_immediately_before_cursor() or self.buffer.tag_at(cursor - 1)
        if tag is not None:
            self._remove_tag(tag.id)
            return

        self.buffer.delete_range(cursor - 1, cursor)
        self.buffer.set_cursor(cursor - 1)
        self._refresh()

    def move_left(self) -> None:
        cursor = self.buffer.cursor
        if cursor == 0:
            return
        tag = self.buffer.tag_at(cursor - 1)
        self.buffer.set_cursor(tag.position if tag is not None else cursor - 1)

    def move_right(self) -> None:
        cursor = self.buffer.cursor
        if cursor == len(self.buffer):
            return
        tag = self.buffer.tag_at(cursor)
        self.buffer.set_cursor(tag.end if tag is not None else cursor + 1)

    def click(self, offset: int) -> None:
        """Place the cursor at *offset*, snapping to the end of a tag."""
        self.buffer.set_cursor(offset)
        self.buffer.set_cursor(self._insertion_point())

    def focus(self) -> None:
        """Move the cursor to the end if it sits at the start of a non-empty formula."""
        if self.buffer.cursor == 0 and len(self.buffer) > 0:
            self.buffer.set_cursor(len(self.buffer))

    # ------------------------------------------------------------------
    # Tag inspection
    # ------------------------------------------------------------------

    def toggle_tag(self, tag_id: int) -> int | None:
        """Open or close the inspection panel for a tag."""
        return self.buffer.toggle_active_tag(tag_id)

    def close_tag(self) -> None:
        self.buffer.set_active_tag(None)

    def remove_active_tag(self) -> Tag | None:
        """Remove the tag currently open for inspection, if any."""
        active = self.buffer.active_tag_id
        if active is None:
            return None
        return self._remove_tag(active)

    def reset(self) -> None:
        self.buffer.reset()
        self.type_search("")
        self._log(EventType.session_reset, EventLevel.info, "Session reset")
        self._refresh()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _next_tag_id(self) -> int:
        tag_id = next(self._tag_ids)
        while tag_id in self.buffer.tags:
            tag_id = next(self._tag_ids)
        return tag_id

    def _insertion_point(self) -> int:
        """The cursor, moved past any tag it would otherwise split."""
        cursor = self.buffer.cursor
        tag = self.buffer.tag_at(cursor)
        if tag is not None and tag.position < cursor:
            return tag.end
        return cursor

    def _insert_char(self, char: str) -> None:
        at = self._insertion_point()
        self.buffer.insert_text(at, char)
        self.buffer.set_cursor(at + 1)
        self._refresh()

    def _remove_tag(self, tag_id: int) -> Tag:
        tag = self.buffer.remove_tag_with_span(tag_id)
        self._log(
            EventType.tag_removed,
            EventLevel.info,
            f"Removed tag {tag.name!r}",
            extra={"tag_id": tag.id, "position": tag.position},
        )
        self._refresh()
        return tag

    def _refresh(self) -> None:
        self._result = calculate(self.buffer.text, self.buffer.tags)
        if self._result.error_code is not None:
            self._log(
                EventType.formula_error,
                EventLevel.warning,
                self._result.message or "",
                error_code=self._result.error_code,
            )
        elif self._result.value is not None:
            self._log(
                EventType.formula_evaluated,
                EventLevel.info,
                "Formula evaluated",
                extra={"value": self._result.value},
            )

    def _log(
        self,
        event_type: EventType,
        level: EventLevel,
        message: str,
        *,
        error_code: str | None = None,
        extra: dict | None = None,
    ) -> None:
        emit(
            make_session_event(
                event_type,
                level,
                message,
                session_id=self.session_id,
                formula=self.buffer.text,
                error_code=error_code,
                extra=extra,
            ),
            session_id=self.session_id,
        )
