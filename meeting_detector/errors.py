"""Exceptions raised and reported by the meeting detector."""

from __future__ import annotations


class MeetingDetectorError(Exception):
    """Base exception for meeting detector errors."""


class SignalParseError(MeetingDetectorError):
    """Raised when a forwarded line is not a well-formed signal record.

    Attributes:
        line: The offending line, as received.
    """

    def __init__(self, line: str, reason: str = "") -> None:
        self.line = line
        self.reason = reason
        msg = f"Failed to parse signal: {line}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class SubprocessError(MeetingDetectorError):
    """Raised when the log source fails to spawn or dies unexpectedly.

    Attributes:
        code: Exit code, or None if the process never started.
        signal: Name of the terminating signal, if any.
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        signal: str | None = None,
    ) -> None:
        self.code = code
        self.signal = signal
        super().__init__(message)


class DetectorStateError(MeetingDetectorError):
    """Raised when start() is called while a session is already active."""

    def __init__(self, message: str = "Detector is already running") -> None:
        super().__init__(message)
