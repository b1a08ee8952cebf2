"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context -- failures are
reported as a rate-limited warning on stderr and never propagate.
"""

from __future__ import annotations

import re
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
    # Single evaluation
    eval_completed = "eval_completed"
    eval_failed = "eval_failed"

    # Batch lifecycle
    batch_started = "batch_started"
    batch_completed = "batch_completed"
    batch_failed = "batch_failed"

    # Table sweep
    sweep_completed = "sweep_completed"


# ---------------------------------------------------------------------------
# Error codes (one per pipeline stage)
# ---------------------------------------------------------------------------

LEXER_ERROR = "lexer_error"
PARSER_ERROR = "parser_error"
PROCESSOR_ERROR = "processor_error"
WORKER_ERROR = "worker_error"


_STAGE_ERROR_CODES = {
    "lexer": LEXER_ERROR,
    "parser": PARSER_ERROR,
    "processor": PROCESSOR_ERROR,
}


def error_code_for_stage(stage: str | Enum | None) -> str | None:
    """Map an ``ErrorStage`` (or its value) to the matching error code."""
    if stage is None:
        return None
    raw = stage.value if isinstance(stage, Enum) else stage
    return _STAGE_ERROR_CODES.get(raw)


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------

# Eval and batch events log the variable table by name, so a variable
# called ``token`` or ``api_key`` has its value masked.
_SENSITIVE_KEY_RE = re.compile(
    r"(password|passwd|secret|token|api_key|apikey|authorization|credential)",
    re.IGNORECASE,
)

_MAX_VALUE_LEN = 256


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with sensitive values redacted.

    Rules:
    - Keys matching sensitive patterns have their values replaced with
      ``"[REDACTED]"``, at any nesting depth.
    - String values longer than 256 chars are truncated.
    """
    return _redact_dict(context)


def _redact_dict(d: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in d.items():
        if _SENSITIVE_KEY_RE.search(str(k)):
            out[k] = "[REDACTED]"
        elif isinstance(v, list):
            out[k] = [_redact_value(item) for item in v]
        else:
            out[k] = _redact_value(v)
    return out


def _redact_value(v: Any) -> Any:
    if isinstance(v, dict):
        return _redact_dict(v)
    if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
        return v[:_MAX_VALUE_LEN] + "...[truncated]"
    return v


# ---------------------------------------------------------------------------
# Helper constructors for consistent attribution
# ---------------------------------------------------------------------------


def make_eval_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    expression: str,
    stage: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> FormularyEvent:
    """Build an event attributed to one expression."""
    ctx: dict[str, Any] = {"expression": expression}
    if stage is not None:
        ctx["stage"] = stage
    if extra:
        ctx.update(extra)
    return FormularyEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


def make_batch_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    batch_id: str,
    extra: dict[str, Any] | None = None,
) -> FormularyEvent:
    """Build an event attributed to one batch."""
    ctx: dict[str, Any] = {"batch_id": batch_id}
    if extra:
        ctx.update(extra)
    return FormularyEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
    )


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class FormularyEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_log_dir`` is called.
_sink: Any = None  # EventSink | None


def set_log_dir(project_dir: Any) -> None:
    """Configure the module-level event sink for a project directory.

    Call this early in a CLI command.  If it is never called, ``emit()``
    silently discards events.

    Reads ``logging_enabled``, ``logging_fsync`` and ``logging_tail_bytes``
    from ``formulary.yaml``.  An unreadable config falls back to defaults.
    """
    global _sink
    from pathlib import Path

    from formulary.logging.sink import EventSink
    from formulary.project import DEFAULT_CONFIG, load_project_config

    project_dir = Path(project_dir)
    try:
        cfg = load_project_config(project_dir)
    except (OSError, ValueError) as exc:
        _stderr_warning(f"could not read config, using defaults: {exc}")
        cfg = dict(DEFAULT_CONFIG)

    if not cfg.get("logging_enabled", True):
        _sink = None
        return

    _sink = EventSink(
        project_dir,
        fsync=bool(cfg.get("logging_fsync", False)),
        tail_bytes=int(cfg.get("logging_tail_bytes") or 0) or None,
    )


def clear_log_dir() -> None:
    """Detach the module-level sink; subsequent ``emit()`` calls are no-ops."""
    global _sink
    _sink = None


def current_log_dir() -> Any:
    """Return the project directory the module sink writes under, or None."""
    return _sink.project_dir if _sink is not None else None


def _get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if _last_stderr_ts and now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    print(f"[formulary] {msg}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: FormularyEvent, *, batch_id: str | None = None) -> None:
    """Write an event to the global log and optionally to a per-batch log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.

    Applies secret redaction to the context before writing.
    """
    try:
        sink = _get_sink()
        if sink is None:
            return
        event = event.model_copy(update={"context": redact_context(event.context)})
        sink.write(event, batch_id=batch_id)
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    batch_id: str | None = None,
) -> None:
    """Convenience: emit an info-level event."""
    emit(
        FormularyEvent(
            level=EventLevel.info,
            event_type=event_type,
            message=message,
            context=context or {},
        ),
        batch_id=batch_id,
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
    batch_id: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        FormularyEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        ),
        batch_id=batch_id,
    )
