"""Records flowing through the detection pipeline.

Upstream: AccumulatedRecord -> CandidateEvent -> forwarded JSON line.
Downstream: forwarded JSON line -> MeetingSignal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

MEETING_SIGNAL_EVENT = "meeting_signal"


class Service(StrEnum):
    """Privacy-sensitive resource named in a TCC log line."""

    MICROPHONE = "microphone"
    CAMERA = "camera"


class Verdict(StrEnum):
    """Outcome of a privacy-access check."""

    REQUESTED = "requested"
    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass
class AccumulatedRecord:
    """Working state folded from successive log lines."""

    service: str = ""
    verdict: str = ""
    pid: str = ""

    def clear(self) -> None:
        self.service = ""
        self.verdict = ""
        self.pid = ""

    def is_empty(self) -> bool:
        return not (self.service or self.verdict or self.pid)


@dataclass
class ProcessContext:
    """Best-effort facts about a process and the desktop around it.

    Every string field uses "" for unknown.
    """

    pid: str
    parent_pid: str = ""
    executable_path: str = ""
    process_name: str = ""
    front_app: str = ""
    window_title: str = ""
    session_id: str = ""
    camera_active: bool = False


@dataclass
class CandidateEvent:
    """A fully resolved access event, ready for the upstream cooldown filter."""

    service: str
    verdict: str
    context: ProcessContext
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def pid(self) -> str:
        return self.context.pid

    def to_forwarded(self) -> dict[str, str]:
        """Serialise to the newline-delimited wire record.

        All values are strings, including camera_active.
        """
        ctx = self.context
        return {
            "event": MEETING_SIGNAL_EVENT,
            "timestamp": self.timestamp.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "service": self.service,
            "verdict": self.verdict,
            "process": ctx.process_name,
            "pid": ctx.pid,
            "parent_pid": ctx.parent_pid,
            "process_path": ctx.executable_path,
            "front_app": ctx.front_app,
            "window_title": ctx.window_title,
            "session_id": ctx.session_id,
            "camera_active": "true" if ctx.camera_active else "false",
        }


@dataclass
class MeetingSignal:
    """The public record delivered to meeting listeners."""

    event: str
    timestamp: str
    service: str
    verdict: str
    process: str
    pid: str
    front_app: str
    camera_active: bool

    @property
    def dedup_key(self) -> str:
        return f"{self.pid}-{self.service}-{self.verdict}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": self.event,
            "timestamp": self.timestamp,
            "service": self.service,
            "verdict": self.verdict,
            "process": self.process,
            "pid": self.pid,
            "front_app": self.front_app,
            "camera_active": self.camera_active,
        }


@dataclass(frozen=True)
class ProcessExit:
    """Exit notification for the log source subprocess.

    ``signal`` is the signal name (e.g. "SIGTERM") when the process was killed.
    """

    code: int | None
    signal: str | None = None
