"""Parsing of forwarded meeting signal records."""

from meeting_detector.signals.parser import SUPPRESSED_PROCESSES, SignalParser

__all__ = ["SUPPRESSED_PROCESSES", "SignalParser"]
