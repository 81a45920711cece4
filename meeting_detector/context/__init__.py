"""Process and foreground-window context providers."""

from meeting_detector.context.resolver import ContextResolver, MacOSContextResolver

__all__ = ["ContextResolver", "MacOSContextResolver"]
