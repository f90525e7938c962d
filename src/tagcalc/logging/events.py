"""Session event schema and the module-level ``emit`` helper.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  ``emit()`` is safe to
call from any context -- failures are swallowed and printed to stderr.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Session lifecycle
    session_started = "session_started"
    session_reset = "session_reset"

    # Buffer edits
    tag_inserted = "tag_inserted"
    tag_removed = "tag_removed"

    # Evaluation
    formula_evaluated = "formula_evaluated"
    formula_error = "formula_error"


# ---------------------------------------------------------------------------
# Context truncation
# ---------------------------------------------------------------------------

_MAX_VALUE_LEN = 256


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long string values truncated.

    Formulas are user text of unbounded length; anything longer than 256
    characters is cut and marked ``...[truncated]``.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, dict):
            out[k] = truncate_context(v)
        elif isinstance(v, list):
            out[k] = [_truncate_value(item) for item in v]
        else:
            out[k] = _truncate_value(v)
    return out


def _truncate_value(v: Any) -> Any:
    if isinstance(v, dict):
        return truncate_context(v)
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class TagcalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_session_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    session_id: str,
    formula: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> TagcalcEvent:
    """Build an event with guaranteed session attribution context."""
    ctx: dict[str, Any] = {"session_id": session_id}
    if formula is not None:
        ctx["formula"] = formula
    if extra:
        ctx.update(extra)
    return TagcalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Set by ``set_project_dir``; ``None`` discards events.
_sink: Any = None  # EventSink | None


def set_project_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    This should be called early in a CLI command.  If it is never called,
    ``emit()`` silently discards events.

    Reads ``logging_enabled``, ``logging_fsync`` and ``logging_tail_bytes``
    from the project config (``tagcalc.yaml``) to configure the sink.
    """
    global _sink
    from pathlib import Path

    from tagcalc.logging.sink import EventSink

    enabled = True
    fsync = False
    tail_bytes = None
    try:
        from tagcalc.project import load_project_config

        cfg = load_project_config(Path(project_dir))
        enabled = bool(cfg.get("logging_enabled", True))
        fsync = bool(cfg.get("logging_fsync", False))
        tb = cfg.get("logging_tail_bytes")
        if tb is not None:
            tail_bytes = int(tb)
    except Exception:
        pass

    if not enabled:
        _sink = None
        return
    _sink = EventSink(Path(project_dir), fsync=fsync, tail_bytes=tail_bytes)


def clear_sink() -> None:
    """Detach the module-level sink; later events are discarded."""
    global _sink
    _sink = None


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[tagcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Safe emit
# ---------------------------------------------------------------------------


def emit(event: TagcalcEvent, *, session_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-session log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = _sink
        if sink is None:
            return
        event = event.model_copy(update={"context": truncate_context(event.context)})
        sink.write(event, session_id=session_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")

