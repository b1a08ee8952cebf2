"""Structured event logging for formulary.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from formulary.logging.events import (
    EventLevel,
    EventType,
    FormularyEvent,
    clear_log_dir,
    current_log_dir,
    emit,
    emit_error,
    emit_info,
    make_batch_event,
    make_eval_event,
    redact_context,
    set_log_dir,
)
from formulary.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "FormularyEvent",
    "clear_log_dir",
    "current_log_dir",
    "emit",
    "emit_error",
    "emit_info",
    "make_batch_event",
    "make_eval_event",
    "redact_context",
    "set_log_dir",
]
