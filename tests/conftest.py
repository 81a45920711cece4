"""Shared test fixtures for the meeting detector tests."""

from __future__ import annotations

import pytest

from meeting_detector.config import DetectorSettings
from meeting_detector.context.resolver import ContextResolver
from meeting_detector.models import ProcessContext


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StaticResolver(ContextResolver):
    """Returns preset contexts keyed by pid and records every lookup."""

    def __init__(self, contexts: dict[str, ProcessContext] | None = None) -> None:
        self.contexts = contexts or {}
        self.lookups: list[str] = []

    def resolve(self, pid: str) -> ProcessContext:
        self.lookups.append(pid)
        ctx = self.contexts.get(pid)
        if ctx is None:
            return ProcessContext(pid=pid)
        return ctx


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Default settings, isolated from MEETING_DETECTOR_* variables."""
    return DetectorSettings(_env_file=None)


@pytest.fixture
def teams_context():
    return ProcessContext(
        pid="7390",
        parent_pid="1",
        executable_path="/Applications/Microsoft Teams.app/Contents/MacOS/MSTeams",
        process_name="MSTeams",
        front_app="MSTeams",
        window_title="Standup | Microsoft Teams",
        session_id="console",
        camera_active=False,
    )


@pytest.fixture
def resolver(teams_context):
    return StaticResolver({"7390": teams_context})


@pytest.fixture
def make_resolver():
    """Factory for resolvers with custom pid -> context tables."""
    return StaticResolver
