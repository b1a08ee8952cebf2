"""Filesystem NDJSON event sink with concurrency-safe appends.

Events are appended as one JSON line per event.  Two log destinations:

- ``logs/events.ndjson``  -- global event log
- ``logs/batches/<batch_id>.ndjson``  -- per-batch log

Writes use ``json.dumps(sort_keys=True)`` for deterministic output.

Concurrency safety:

- Each append acquires an exclusive ``fcntl.flock`` on the target file.
- Reads take a shared lock and parse at most the last ``tail_bytes``.
- On platforms without ``fcntl`` (Windows), locking is skipped.
"""

from __future__ import annotations

import json
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from formulary.logging.events import FormularyEvent

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

# Path-component validation: reject anything that could escape the logs dir
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

# Default tail-read size (2 MB)
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


class EventSink:
    """Append-only NDJSON log writer with file locking."""

    def __init__(self, project_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.project_dir = Path(project_dir)
        self.logs_dir = self.project_dir / "logs"
        self._fsync = fsync
        self._tail_bytes = tail_bytes if tail_bytes is not None else _DEFAULT_TAIL_BYTES

        self.logs_dir.mkdir(parents=True, exist_ok=True)
        (self.logs_dir / "batches").mkdir(exist_ok=True)

    def write(self, event: FormularyEvent, *, batch_id: str | None = None) -> None:
        """Append *event* to the global log and optionally a batch log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"

        self._append(self.logs_dir / "events.ndjson", line)

        if batch_id and _SAFE_ID_RE.match(batch_id):
            self._append(self.logs_dir / "batches" / f"{batch_id}.ndjson", line)

    # ------------------------------------------------------------------
    # Query helpers (used by the CLI)
    # ------------------------------------------------------------------

    def read_global(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        batch_id: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Read events from the global log, most-recent-first, with filters.

        Uses tail-style reading to bound memory usage on large log files.
        """
        limit = min(limit, 2000)

        events = self._read_ndjson(self.logs_dir / "events.ndjson")

        if level:
            events = [e for e in events if e.get("level") == level]
        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        if batch_id:
            events = [
                e for e in events
                if e.get("context", {}).get("batch_id") == batch_id
            ]

        events.reverse()
        return events[:limit]

    def read_batch_log(self, batch_id: str) -> list[dict[str, Any]]:
        """Read all events for a specific batch, oldest first."""
        if not _SAFE_ID_RE.match(batch_id):
            return []
        return self._read_ndjson(self.logs_dir / "batches" / f"{batch_id}.ndjson")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append(self, path: Path, line: str) -> None:
        """Append one encoded line to *path* while holding an exclusive lock."""
        with open(path, "ab") as f, _flocked(f, exclusive=True):
            f.write(line.encode("utf-8"))
            f.flush()
            if self._fsync:
                os.fsync(f.fileno())

    def _read_ndjson(self, path: Path) -> list[dict[str, Any]]:
        """Parse the tail of *path*; a missing file reads as no events."""
        try:
            f = open(path, "rb")
        except FileNotFoundError:
            return []
        with f, _flocked(f, exclusive=False):
            offset = max(0, os.fstat(f.fileno()).st_size - self._tail_bytes)
            f.seek(offset)
            chunk = f.read()

        lines = chunk.split(b"\n")
        if offset:
            # Reading from mid-file: the first line is probably cut short.
            lines = lines[1:]
        return [event for event in map(_parse_line, lines) if event is not None]


@contextmanager
def _flocked(f: IO[bytes], *, exclusive: bool) -> Iterator[IO[bytes]]:
    """Hold an ``flock`` on open file *f* for the body of the block."""
    if not _HAS_FCNTL:
        yield f
        return
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield f
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def _parse_line(raw: bytes) -> dict[str, Any] | None:
    """Decode one NDJSON line; blank or corrupt lines give None."""
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None
