"""Structured event logging for tagcalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
``emit`` helper that never raises uncaught exceptions.
"""

from tagcalc.logging.events import (
    EventLevel,
    EventType,
    TagcalcEvent,
    clear_sink,
    emit,
    make_session_event,
    set_project_dir,
    truncate_context,
)
from tagcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "TagcalcEvent",
    "clear_sink",
    "emit",
    "make_session_event",
    "set_project_dir",
    "truncate_context",
]
