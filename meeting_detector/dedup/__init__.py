"""Time-windowed deduplication for meeting signals."""

from meeting_detector.dedup.cooldown import CooldownFilter, CooldownState
from meeting_detector.dedup.signal_cache import SignalDeduplicator
from meeting_detector.dedup.store import Entry, ExpiringStore

__all__ = ["CooldownFilter", "CooldownState", "Entry", "ExpiringStore", "SignalDeduplicator"]
