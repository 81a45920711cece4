"""Incremental TCC log parser.

A single access check is spread over several unified-log lines: one names
the service, some carry a verdict, and one carries the target pid. The
accumulator folds lines into an AccumulatedRecord and resolves it when the
pid line arrives.

States: EMPTY -> SERVICE_KNOWN -> (VERDICT_KNOWN)* -> resolved.
"""

from __future__ import annotations

import logging
import re
from enum import StrEnum

from meeting_detector.models import AccumulatedRecord, Service, Verdict

logger = logging.getLogger(__name__)

MICROPHONE_TOKEN = "kTCCServiceMicrophone"
CAMERA_TOKEN = "kTCCServiceCamera"

# Checked in order; the first family with a hit sets the verdict.
_VERDICT_TOKENS: tuple[tuple[Verdict, tuple[str, ...]], ...] = (
    (Verdict.ALLOWED, ("Access Allowed", "Auth Granted", "Allow")),
    (Verdict.DENIED, ("Denied",)),
    (Verdict.REQUESTED, ("FORWARD",)),
)

_TARGET_PID = re.compile(r"target_token=\{pid:(\d+)")


class AccumulatorState(StrEnum):
    EMPTY = "empty"
    SERVICE_KNOWN = "service_known"
    VERDICT_KNOWN = "verdict_known"


class EventAccumulator:
    """Folds raw log lines into resolved access records."""

    def __init__(self) -> None:
        self._record = AccumulatedRecord()

    @property
    def state(self) -> AccumulatorState:
        if self._record.verdict:
            return AccumulatorState.VERDICT_KNOWN
        if self._record.service:
            return AccumulatorState.SERVICE_KNOWN
        return AccumulatorState.EMPTY

    @property
    def pending(self) -> AccumulatedRecord:
        """A copy of the in-flight record."""
        return AccumulatedRecord(
            service=self._record.service,
            verdict=self._record.verdict,
            pid=self._record.pid,
        )

    def feed(self, line: str) -> AccumulatedRecord | None:
        """Consume one raw line.

        Returns:
            The resolved record when ``line`` is a pid trigger and a service
            was seen, else None. A pid trigger always resets the accumulator.
        """
        if MICROPHONE_TOKEN in line:
            self._record.service = Service.MICROPHONE.value
        elif CAMERA_TOKEN in line:
            self._record.service = Service.CAMERA.value

        for verdict, tokens in _VERDICT_TOKENS:
            if any(token in line for token in tokens):
                self._record.verdict = verdict.value
                break

        match = _TARGET_PID.search(line)
        if match is None:
            return None

        self._record.pid = match.group(1)
        resolved: AccumulatedRecord | None = None
        if self._record.service and self._record.pid:
            resolved = self.pending
        else:
            logger.debug("Dropping pid %s trigger with no service", self._record.pid)
        self.reset()
        return resolved

    def reset(self) -> None:
        """Discard any partially accumulated record."""
        self._record.clear()
