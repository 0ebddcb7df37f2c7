"""Journal manager -- append-only provenance tracking for splicebench.

Each schema gets one JSONL session file (one JSON object per line) under
``<log_base>/journal/``. Every ``run`` and ``validate`` against that schema
appends to it, so the history of provisioning attempts and benchmark
results for a schema can be read back in one place.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from splicebench import __version__

from .events import CommandName, EventType, JournalEvent

logger = logging.getLogger(__name__)


def _generate_session_id() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S") + "-" + uuid.uuid4().hex[:6]


def _sanitize_name(name: str) -> str:
    """Sanitize a schema name for use as a filename component."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name) if name else "unnamed"


class Journal:
    """Append-only journal for command and execution provenance.

    Usage::

        journal = Journal(workspace.journal_dir)
        journal.open_session(schema="TPCH1", details={"scale": 1})
        journal.begin_command(CommandName.RUN, {"mode": "bulk"})
        journal.record(EventType.PROVISION_STAGE, "create took 812 ms", ...)
        journal.end_command(success=True)
    """

    def __init__(self, journal_dir: Path | str) -> None:
        self.journal_dir = Path(journal_dir)
        self.session_id: str | None = None
        self._session_file: Path | None = None
        self._current_command: CommandName | None = None
        self._command_start_time: datetime | None = None
        self._event_count: int = 0

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def open_session(self, schema: str, details: dict[str, Any] | None = None) -> str:
        """Open or resume the session for ``schema``.

        Returns:
            The session_id
        """
        self.journal_dir.mkdir(parents=True, exist_ok=True)
        safe_name = _sanitize_name(schema)

        existing = self._find_session(safe_name)
        if existing:
            self.session_id = existing["session_id"]
            self._session_file = existing["path"]
            self._event_count = existing["event_count"]
            logger.debug("Resumed session %s for '%s'", self.session_id, schema)
            return self.session_id

        self.session_id = _generate_session_id()
        self._session_file = self.journal_dir / f"session-{safe_name}.jsonl"
        self._event_count = 0

        self.record(
            EventType.SESSION_START,
            message=f"Session started for '{schema}'",
            details={
                "schema": schema,
                "splicebench_version": __version__,
                **(details or {}),
            },
        )
        return self.session_id

    # ------------------------------------------------------------------
    # Command lifecycle
    # ------------------------------------------------------------------

    def begin_command(self, command: CommandName, args: dict[str, Any] | None = None) -> None:
        """Mark the start of a CLI command."""
        self._current_command = command
        self._command_start_time = datetime.now()

        self.record(
            EventType.COMMAND_START,
            message=f"Command '{command.value}' started",
            command=command.value,
            details={"args": args or {}},
        )

    def end_command(self, success: bool, message: str = "", exit_code: int | None = None) -> None:
        """Mark the end of a CLI command."""
        duration = None
        if self._command_start_time:
            duration = (datetime.now() - self._command_start_time).total_seconds()

        cmd_name = self._current_command.value if self._current_command else "unknown"
        if exit_code is None:
            exit_code = 0 if success else 1
        self.record(
            EventType.COMMAND_END,
            message=message or f"Command '{cmd_name}' {'succeeded' if success else 'failed'}",
            command=cmd_name,
            success=success,
            duration_s=duration,
            details={"exit_code": exit_code},
        )

        self._current_command = None
        self._command_start_time = None

    # ------------------------------------------------------------------
    # Generic event recording
    # ------------------------------------------------------------------

    def record(
        self,
        event_type: EventType,
        message: str,
        command: str | None = None,
        success: bool | None = None,
        details: dict[str, Any] | None = None,
        duration_s: float | None = None,
    ) -> JournalEvent:
        """Append an event to the journal file.

        If the journal is not open, returns a stub event without writing.
        """
        if not self.session_id or not self._session_file:
            logger.debug("Journal not open, skipping event")
            return JournalEvent(event_type=event_type, session_id="none", message=message)

        event = JournalEvent(
            event_type=event_type,
            session_id=self.session_id,
            message=message,
            command=command or (self._current_command.value if self._current_command else None),
            success=success,
            details=details or {},
            duration_s=duration_s,
        )

        with open(self._session_file, "a") as f:
            f.write(json.dumps(event.to_dict(), default=str) + "\n")

        self._event_count += 1
        return event

    # ------------------------------------------------------------------
    # Session discovery
    # ------------------------------------------------------------------

    def _find_session(self, safe_name: str) -> dict[str, Any] | None:
        path = self.journal_dir / f"session-{safe_name}.jsonl"
        if not path.exists():
            return None

        try:
            lines = path.read_text().strip().splitlines()
            if not lines:
                return None
            first_event = json.loads(lines[0])
            return {
                "session_id": first_event["session_id"],
                "path": path,
                "event_count": len(lines),
            }
        except (json.JSONDecodeError, KeyError, OSError):
            return None

    def list_sessions(self) -> list[dict[str, Any]]:
        """List all sessions with summary info, most recent activity first."""
        sessions = []
        for path in self.journal_dir.glob("session-*.jsonl"):
            try:
                events = self._load_events(path)
            except (json.JSONDecodeError, OSError):
                continue
            if not events:
                continue

            first = events[0]
            last = events[-1]
            commands = [
                e.get("command", "")
                for e in events
                if e.get("event_type") == EventType.COMMAND_START.value
            ]
            sessions.append(
                {
                    "session_id": first.get("session_id", ""),
                    "schema": first.get("details", {}).get("schema", ""),
                    "started": first.get("timestamp", ""),
                    "last_event": last.get("timestamp", ""),
                    "event_count": len(events),
                    "commands": commands,
                    "path": str(path),
                }
            )

        sessions.sort(key=lambda s: s.get("last_event", ""), reverse=True)
        return sessions

    def load_session_events(self, session_id: str) -> list[dict[str, Any]]:
        """Load all events for a specific session, in chronological order."""
        for path in self.journal_dir.glob("session-*.jsonl"):
            try:
                events = self._load_events(path)
            except (json.JSONDecodeError, OSError):
                continue
            if events and events[0].get("session_id") == session_id:
                return events
        return []

    def _load_events(self, path: Path) -> list[dict[str, Any]]:
        events = []
        with open(path) as f:
            for line in f:
                line = line.strip()
                if line:
                    events.append(json.loads(line))
        return events
