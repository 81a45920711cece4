"""Line-level parsing of the TCC log stream."""

from meeting_detector.stream.accumulator import AccumulatorState, EventAccumulator
from meeting_detector.stream.lines import LineSplitter

__all__ = ["AccumulatorState", "EventAccumulator", "LineSplitter"]
