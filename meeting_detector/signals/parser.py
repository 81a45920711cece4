"""Downstream parsing of forwarded records into MeetingSignal objects."""

from __future__ import annotations

import json
from typing import Any

from meeting_detector.errors import SignalParseError
from meeting_detector.identity.normalizer import normalize
from meeting_detector.models import MEETING_SIGNAL_EVENT, MeetingSignal, Service

# Services that are resource names rather than app labels
_RESOURCE_SERVICES = {Service.MICROPHONE.value, Service.CAMERA.value, ""}

# Non-meeting helpers that touch audio devices (case-insensitive substrings)
SUPPRESSED_PROCESSES: tuple[str, ...] = ("afplay", "sirincservice")


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class SignalParser:
    """Turns one forwarded JSON line into a MeetingSignal."""

    def parse(self, line: str) -> MeetingSignal:
        """Parse ``line``.

        Raises:
            SignalParseError: If the line is not a JSON object, including
                oversized integers and nesting too deep to decode.
        """
        try:
            data = json.loads(line)
        except (ValueError, RecursionError) as e:
            raise SignalParseError(line, str(e)) from e
        if not isinstance(data, dict):
            raise SignalParseError(line, "expected a JSON object")

        front_app = _as_str(data.get("front_app"))
        process = _as_str(data.get("process"))
        upstream_service = _as_str(data.get("service"))
        if upstream_service in _RESOURCE_SERVICES:
            service = normalize(front_app, process)
        else:
            service = upstream_service

        return MeetingSignal(
            event=_as_str(data.get("event")) or MEETING_SIGNAL_EVENT,
            timestamp=_as_str(data.get("timestamp")),
            service=service,
            verdict=_as_str(data.get("verdict")),
            process=process,
            pid=_as_str(data.get("pid")),
            front_app=front_app,
            camera_active=_coerce_bool(data.get("camera_active")),
        )

    @staticmethod
    def is_suppressed(signal: MeetingSignal) -> bool:
        """True if the signal comes from a known non-meeting helper."""
        process_name = signal.process.lower()
        return any(name in process_name for name in SUPPRESSED_PROCESSES)
