"""Meeting detection from macOS TCC microphone/camera access logs.

Usage:
    from meeting_detector import detector

    meeting_detector = detector(lambda signal: print(signal.service))
"""

from meeting_detector.config import DetectorSettings, get_settings
from meeting_detector.detector import MeetingDetector, SignalPipeline, detector
from meeting_detector.errors import (
    DetectorStateError,
    MeetingDetectorError,
    SignalParseError,
    SubprocessError,
)
from meeting_detector.models import MeetingSignal, ProcessExit, Service, Verdict

__all__ = [
    "DetectorSettings",
    "DetectorStateError",
    "MeetingDetector",
    "MeetingDetectorError",
    "MeetingSignal",
    "ProcessExit",
    "Service",
    "SignalParseError",
    "SignalPipeline",
    "SubprocessError",
    "Verdict",
    "detector",
    "get_settings",
]
