"""Journal event definitions for splicebench provenance tracking."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Types of journal events."""

    # Session lifecycle
    SESSION_START = "session.start"

    # Command lifecycle
    COMMAND_START = "command.start"
    COMMAND_END = "command.end"

    # Sanity checks
    CONNECTIVITY_CHECK = "connectivity.check"

    # Validation
    SCHEMA_VALIDATED = "schema.validated"

    # Provisioning
    PROVISION_STAGE = "provision.stage"
    PROVISION_COMPLETE = "provision.complete"

    # Benchmark
    BENCHMARK_START = "benchmark.start"
    BENCHMARK_ITERATION = "benchmark.iteration"
    BENCHMARK_COMPLETE = "benchmark.complete"


class CommandName(str, Enum):
    """CLI command names for journal tracking."""

    RUN = "run"
    VALIDATE = "validate"


@dataclass
class JournalEvent:
    """A single journal entry.

    Uniform envelope for all provenance events. Each event is serialized
    as one JSON line in a session JSONL file.
    """

    event_type: EventType
    session_id: str
    message: str
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    command: str | None = None
    success: bool | None = None
    details: dict[str, Any] = field(default_factory=dict)
    duration_s: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-safe dict."""
        d = asdict(self)
        d["event_type"] = self.event_type.value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JournalEvent:
        """Deserialize from dict."""
        data = dict(data)  # shallow copy to avoid mutating input
        data["event_type"] = EventType(data["event_type"])
        return cls(**data)
